"""vibecord: relay chat sessions to the Codex CLI."""

__version__ = "0.3.0"
