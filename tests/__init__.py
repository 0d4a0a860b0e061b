"""
Test suite for the projecthub backend.

Test Categories:
- Pure tests for role sets and access decisions (test_access.py)
- API tests over an in-memory SQLite database using httpx AsyncClient
- Service-level statistics tests against the session directly

Running Tests:
- All tests: pytest
- One resource: pytest tests/test_invoices.py
"""
