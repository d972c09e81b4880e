"""Test fixture package for the depot finder.

Contains fixtures for:
- In-memory SQLite sessions with the depot tables created
- Applications wired with mocked services
"""
