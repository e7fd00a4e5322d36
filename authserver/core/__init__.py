"""
Core Package

This package contains core configuration for the authorization server.

Modules:
- settings: Application settings loaded from the environment / .env
"""
