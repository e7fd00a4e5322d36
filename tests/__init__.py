"""
Authorization Server Tests

This package contains all tests for the authorization server.

Test Organization:
- api/: Tests for the service layer, CRUD queries, middleware and routers
- test_*.py: Tests for models, settings, logging and the CLI

Running Tests:
    # Run all tests
    pytest tests/

    # Run only API tests
    pytest tests/api/

    # Run specific module
    pytest tests/api/test_authorization_tracking_service.py

    # Run with coverage
    pytest --cov=authserver tests/
"""
