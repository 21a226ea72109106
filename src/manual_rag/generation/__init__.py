"""manual_rag.generation

Generation boundary and prompt construction.

Modules
-------
llm_interface
    LLM abstraction, OpenAI-compatible chat backend and the bounded
    ``generate_text`` boundary.
prompt_builder
    Jinja2 prompt templates bundled under ``prompts/``.
"""
