"""Prune aged backup folders from an S3 bucket."""

__version__ = "0.1.0"
