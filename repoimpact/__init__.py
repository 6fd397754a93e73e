"""Repository fact extraction and change-impact estimation."""

__version__ = "0.1.0"
