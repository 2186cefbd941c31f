# tests/property/__init__.py
"""Property-based tests for durascope.

Invariants that must hold for ALL storage contents, not just the sample
task hub:
- History order is total and independent of storage order
- Failure correlation names exactly the activities that were scheduled
- Status buckets never exceed the instance total
- Prefix ranges select exactly the prefixed keys
"""
