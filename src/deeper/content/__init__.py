"""Bundled question content."""
