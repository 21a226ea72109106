"""
Retrieval layer of the question-answering pipeline.

This package covers everything needed to turn PDF, DOCX and plain-text manuals into a
searchable corpus and to fetch the most relevant chunks for a query.

Submodules
----------
document_loader
    Reads manuals from disk and writes the JSON corpus store.
text_splitter
    Splits manual text into overlapping character windows.
snapshot
    Immutable corpus snapshot with precomputed term statistics, and the
    manager that rebuilds and publishes it.
retriever
    BM25 lexical retriever with a token-overlap fallback.
reranker
    Heuristic and model-assisted rerankers.
types
    Retriever and reranker protocols.
"""
