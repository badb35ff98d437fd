# tests/property/conftest.py
"""Shared Hypothesis strategies for property-based tests.

Usage:
    from tests.property.conftest import valid_retries, valid_delays

    @given(retries=valid_retries, retry_delay=valid_delays)
    def test_backoff(retries: int, retry_delay: float) -> None:
        ...
"""

from __future__ import annotations

import math

from hypothesis import strategies as st

# Attempt budgets large enough to show the schedule, small enough to stay fast
valid_retries = st.integers(min_value=1, max_value=12)

# Initial delays, including zero (retry immediately)
valid_delays = st.floats(min_value=0.0, max_value=60.0, allow_nan=False, allow_infinity=False)

# Deadlines must be strictly positive
valid_timeouts = st.floats(min_value=1e-3, max_value=3600.0, allow_nan=False, allow_infinity=False)

invalid_delays = st.one_of(
    st.floats(max_value=-1e-9, allow_nan=False, allow_infinity=False),
    st.sampled_from([math.nan, math.inf]),
)

invalid_timeouts = st.one_of(
    st.just(0.0),
    st.sampled_from([math.nan, math.inf]),
    st.floats(max_value=0.0, allow_nan=False, allow_infinity=False),
)
