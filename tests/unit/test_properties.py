"""Property-based tests for the pure helpers behind probe evaluation and scoring."""

from typing import Any

import pytest
from hypothesis import given
from hypothesis import strategies as st
from propdx.application.environment import is_plausible_value, mask_value
from propdx.application.health import lookup_field
from propdx.application.probes import resolve_result_count
from propdx.application.suites import (
    VERDICT_ATTENTION,
    VERDICT_DEGRADED,
    VERDICT_OPERATIONAL,
    suite_verdict,
)
from propdx.domain.models import Outcome

json_values = st.recursive(
    st.none() | st.booleans() | st.integers() | st.text(max_size=10),
    lambda children: st.lists(children, max_size=4)
    | st.dictionaries(st.text(max_size=8), children, max_size=4),
    max_leaves=12,
)


@pytest.mark.offline
@given(json_values)
def test_result_count_never_negative(body: Any) -> None:
    assert resolve_result_count(body) >= 0


@pytest.mark.offline
@given(st.lists(st.integers(), max_size=30))
def test_result_count_matches_properties_list(items: list[int]) -> None:
    body = {"properties": items, "foreclosures": [1]}
    expected = len(items) if items else 1
    assert resolve_result_count(body) == expected


@pytest.mark.offline
@given(json_values, st.text(min_size=1, max_size=20))
def test_lookup_field_never_raises(payload: Any, dotted: str) -> None:
    lookup_field(payload, dotted)


@pytest.mark.offline
@given(st.text(min_size=1))
def test_mask_value_never_leaks_more_than_prefix(value: str) -> None:
    masked = mask_value(value)
    assert masked.endswith("...")
    assert len(masked) <= 11


@pytest.mark.offline
@given(st.text(max_size=10))
def test_short_values_are_never_plausible(value: str) -> None:
    assert is_plausible_value(value) is False


@pytest.mark.offline
@given(st.lists(st.booleans(), max_size=25))
def test_suite_verdict_is_consistent(flags: list[bool]) -> None:
    outcomes = tuple(
        Outcome(probe_name=str(i), passed=flag, duration_ms=0) for i, flag in enumerate(flags)
    )
    verdict = suite_verdict(outcomes)

    if flags and all(flags):
        assert verdict == VERDICT_OPERATIONAL
    elif flags and sum(flags) * 100 >= 80 * len(flags):
        assert verdict == VERDICT_DEGRADED
    else:
        assert verdict == VERDICT_ATTENTION
