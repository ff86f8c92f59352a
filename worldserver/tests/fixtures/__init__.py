"""Shared test doubles for worldserver tests."""
