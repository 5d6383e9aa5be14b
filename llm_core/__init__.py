"""One call surface over many LLM backends."""

__version__ = "0.1.0"
