"""RAG (Retrieval-Augmented Generation) pipeline components.

This package contains modules for:
- Markdown parsing and splitting
- Embedding-based ingestion
- Qdrant and FAISS vector storage
- Similarity search and context assembly
"""
