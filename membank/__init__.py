"""
Memory banks: cached text embeddings, semantic search and similarity graphs.
"""

__version__ = "1.0.0"
