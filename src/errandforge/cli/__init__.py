"""Command-line interface for ErrandForge."""
