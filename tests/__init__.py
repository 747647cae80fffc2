"""
Test package for the context client.

- unit/: Unit tests for individual components
- integration/: End-to-end tests against in-process provider modules

Run tests with:
    pytest tests/                    # All tests
    pytest tests/unit/              # Unit tests only
"""
