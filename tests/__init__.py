"""HA-MeetingLight Test Suite.

This package contains unit tests and test fixtures for the HA-MeetingLight
agent. Tests run on any OS: the Windows registry and the MQTT client are
replaced with in-memory fakes.

Test Organization:
    tests/
        unit/                 - Unit tests for individual modules
            meeting_light/
                core/         - Config, messaging, discovery, connection tests
                collectors/   - Consent store scan tests
                monitors/     - Device monitor tests
                utils/        - Platform helper tests
            test_main.py      - Entry point tests
        conftest.py           - Pytest configuration and global fixtures

Running Tests:
    # Run all tests
    pytest

    # Run with coverage
    pytest --cov=meeting_light --cov-report=html

    # Run specific test file
    pytest tests/unit/meeting_light/core/test_connection.py

    # Run tests matching pattern
    pytest -k retry

    # Run with verbose output
    pytest -v
"""
