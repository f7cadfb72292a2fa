"""avatar-rag command line interface."""
