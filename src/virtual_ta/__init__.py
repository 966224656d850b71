"""virtual-ta: retrieval-augmented teaching assistant for course and forum content."""

__version__ = "0.1.0"
