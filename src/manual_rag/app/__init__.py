"""manual_rag.app

Application entry points: the composition root, the FastAPI app, the
interactive CLI and the ingestion command.
"""
