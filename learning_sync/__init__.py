"""Learning portal → Notion assignment sync."""

__version__ = "0.1.0"
