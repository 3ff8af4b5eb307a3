"""Packaged JSON schemas for monoci configuration."""
