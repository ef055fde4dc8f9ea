"""Fixtures for receipt printer integration testing."""
