"""News Portal backend service."""
