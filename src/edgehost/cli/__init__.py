"""Command-line interface for edgehost."""
