"""Command-line interface for StatBot."""
