"""Archive ASS live-chat recordings into SQLite or PostgreSQL."""

__version__ = "0.1.0"
