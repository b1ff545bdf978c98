"""Backend for turning trending topics into narrated short-form slideshow videos."""

__version__ = "1.0.0"
