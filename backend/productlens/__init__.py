"""ProductLens - turns a product URL into bounded, LLM-ready text."""

__version__ = "0.1.0"
