"""
Shared utilities.

Modules:
- logging_setup: Logging configuration for the API server and CLI
"""
