"""CLI management commands."""
