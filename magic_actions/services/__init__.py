"""Adapters for external collaborators: generation backends and prompt rendering."""
