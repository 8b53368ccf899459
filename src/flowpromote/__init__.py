"""Promote workflow definitions between environments with rollback support."""

__version__ = "0.1.0"

__all__ = ["__version__"]
