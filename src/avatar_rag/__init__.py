"""avatar-rag: retrieval-augmented answers from a creator's own content."""

__version__ = "0.1.0"
