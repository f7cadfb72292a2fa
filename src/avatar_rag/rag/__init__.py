"""Retrieval, context assembly and response generation."""
