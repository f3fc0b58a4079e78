"""Command line interface for vibecord."""
