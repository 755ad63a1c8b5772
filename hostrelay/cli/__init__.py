"""Command-line interface for hostrelay."""
