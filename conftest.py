"""Pytest root: makes ``main`` importable from the test suite."""
