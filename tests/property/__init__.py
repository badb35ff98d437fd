# tests/property/__init__.py
"""Property-based tests for offload.

Property-based testing validates invariants that must hold for ALL inputs,
not just the specific examples we think of.

Test categories:
- engine/: Retry budget and backoff schedule, RunConfig validation
"""
