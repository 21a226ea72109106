"""manual_rag.pipelines

Pipeline orchestration for the manuals question-answering system.

Pipelines are stateless beyond their configured components, making them safe
to reuse across requests and execution contexts.

Modules
-------
rag_pipeline
    Retrieval → rerank → generation → answer normalisation.
"""
