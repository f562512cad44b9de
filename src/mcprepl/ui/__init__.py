"""Textual terminal front-end."""
