"""Record types for the News Portal backend."""

from .article import Article

__all__ = ['Article']
