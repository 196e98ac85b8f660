"""Ask questions about your documents with a local LLM."""

__version__ = "0.1.0"
