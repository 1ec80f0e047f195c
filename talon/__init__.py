"""TALON: a retrieval-augmented chat assistant over uploaded documents and curated knowledge."""

__version__ = "0.1.0"
