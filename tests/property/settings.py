# tests/property/settings.py
"""Standardized Hypothesis settings profiles for property tests.

Import these instead of using inline @settings(max_examples=...).

Usage:
    from tests.property.settings import STANDARD_SETTINGS

    @given(events=histories())
    @STANDARD_SETTINGS
    def test_something(events):
        ...

Tiers:
- STANDARD_SETTINGS: 100 examples - Regular property tests
- SLOW_SETTINGS: 50 examples - Tests that drive the async in-memory stores
"""

from hypothesis import settings

STANDARD_SETTINGS = settings(max_examples=100)

# Each example spins up an event loop
SLOW_SETTINGS = settings(max_examples=50)
