"""Packaged data files (command catalog)."""
