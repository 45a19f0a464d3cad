# This project was developed with assistance from AI tools.
"""LLM inference client for document classification."""
