"""Test helpers shared across unit, property and CLI tests."""
