"""Unit tests for context_anchor.trust.level — TrustLevel enum and derive_level."""
from __future__ import annotations

import pytest

from context_anchor.trust.level import LEVEL_THRESHOLDS, TrustLevel, derive_level


class TestTrustLevelEnum:
    def test_restricted_value_is_zero(self) -> None:
        assert TrustLevel.RESTRICTED == 0

    def test_standard_value_is_three(self) -> None:
        assert TrustLevel.STANDARD == 3

    def test_exemplary_value_is_five(self) -> None:
        assert TrustLevel.EXEMPLARY == 5

    def test_all_six_levels_exist(self) -> None:
        assert len(TrustLevel) == 6

    def test_sorted_levels_ascending(self) -> None:
        expected = [
            TrustLevel.RESTRICTED,
            TrustLevel.LIMITED,
            TrustLevel.PROBATIONARY,
            TrustLevel.STANDARD,
            TrustLevel.ESTABLISHED,
            TrustLevel.EXEMPLARY,
        ]
        assert sorted(TrustLevel) == expected

    def test_members_are_int_comparable(self) -> None:
        assert TrustLevel.ESTABLISHED >= 4
        assert TrustLevel.PROBATIONARY < 3


class TestLevelThresholds:
    def test_thresholds_are_descending(self) -> None:
        values = list(LEVEL_THRESHOLDS.values())
        assert values == sorted(values, reverse=True)

    def test_restricted_has_no_threshold(self) -> None:
        assert TrustLevel.RESTRICTED not in LEVEL_THRESHOLDS

    @pytest.mark.parametrize(
        ("level", "threshold"),
        [
            (TrustLevel.EXEMPLARY, 90.0),
            (TrustLevel.ESTABLISHED, 75.0),
            (TrustLevel.STANDARD, 50.0),
            (TrustLevel.PROBATIONARY, 25.0),
            (TrustLevel.LIMITED, 10.0),
        ],
    )
    def test_threshold_values(self, level: TrustLevel, threshold: float) -> None:
        assert LEVEL_THRESHOLDS[level] == threshold


class TestDeriveLevel:
    def test_zero_returns_restricted(self) -> None:
        assert derive_level(0.0) == TrustLevel.RESTRICTED

    def test_just_below_limited_returns_restricted(self) -> None:
        assert derive_level(9.99) == TrustLevel.RESTRICTED

    def test_at_limited_threshold(self) -> None:
        assert derive_level(10.0) == TrustLevel.LIMITED

    def test_at_probationary_threshold(self) -> None:
        assert derive_level(25.0) == TrustLevel.PROBATIONARY

    def test_default_score_is_standard(self) -> None:
        assert derive_level(50.0) == TrustLevel.STANDARD

    def test_just_below_established_returns_standard(self) -> None:
        assert derive_level(74.99) == TrustLevel.STANDARD

    def test_at_established_threshold(self) -> None:
        assert derive_level(75.0) == TrustLevel.ESTABLISHED

    def test_at_exemplary_threshold(self) -> None:
        assert derive_level(90.0) == TrustLevel.EXEMPLARY

    def test_score_of_100_returns_exemplary(self) -> None:
        assert derive_level(100.0) == TrustLevel.EXEMPLARY
