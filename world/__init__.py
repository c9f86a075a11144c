"""Chunked world model and its on-disk format."""
