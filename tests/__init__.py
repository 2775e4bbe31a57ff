"""Test suite for the Cedar Intake service.

This package contains tests for:
- Validation engine and form schemas
- Record store, booking slots and concurrency
- Bot verification, ClickUp tasks and confirmation email
- Submission pipeline and multi-step wizards
- HTTP endpoints, configuration and logging
"""
