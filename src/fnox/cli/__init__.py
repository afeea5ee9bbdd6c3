"""Command line interface for fnox."""
