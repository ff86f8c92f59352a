"""Test suite for worldserver."""
