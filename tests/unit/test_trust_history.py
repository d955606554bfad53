"""Unit tests for context_anchor.trust.history — TrustHistory queries and trends."""
from __future__ import annotations

import datetime

import pytest

from context_anchor.store import InMemoryAnchorStore
from context_anchor.trust.history import TrustHistory
from context_anchor.trust.record import TrustEvolutionRecord

BASE = datetime.datetime(2026, 5, 1, tzinfo=datetime.timezone.utc)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def store() -> InMemoryAnchorStore:
    return InMemoryAnchorStore()


@pytest.fixture()
def history(store: InMemoryAnchorStore) -> TrustHistory:
    return TrustHistory(store)


def _record_scores(
    store: InMemoryAnchorStore,
    anchor_id: str,
    scores: list[float],
    start: float = 50.0,
) -> list[TrustEvolutionRecord]:
    records = []
    previous = start
    for day, score in enumerate(scores):
        record = TrustEvolutionRecord(
            anchor_id=anchor_id,
            previous_score=previous,
            new_score=score,
            previous_level=3,
            new_level=3,
            factors=[],
            timestamp=BASE + datetime.timedelta(days=day),
        )
        store.append_trust_record(record)
        records.append(record)
        previous = score
    return records


# ---------------------------------------------------------------------------
# for_anchor / latest
# ---------------------------------------------------------------------------


class TestTrustHistoryQueries:
    def test_unknown_anchor_has_empty_history(self, history: TrustHistory) -> None:
        assert history.for_anchor("anchor-001") == []
        assert history.latest("anchor-001") is None

    def test_records_oldest_first(
        self, history: TrustHistory, store: InMemoryAnchorStore
    ) -> None:
        _record_scores(store, "anchor-001", [55.0, 60.0, 58.0])
        assert [r.new_score for r in history.for_anchor("anchor-001")] == [55.0, 60.0, 58.0]

    def test_since_filters_older_records(
        self, history: TrustHistory, store: InMemoryAnchorStore
    ) -> None:
        _record_scores(store, "anchor-001", [55.0, 60.0, 58.0])
        since = BASE + datetime.timedelta(days=1)
        assert [r.new_score for r in history.for_anchor("anchor-001", since)] == [60.0, 58.0]

    def test_latest_is_most_recent(
        self, history: TrustHistory, store: InMemoryAnchorStore
    ) -> None:
        records = _record_scores(store, "anchor-001", [55.0, 60.0])
        assert history.latest("anchor-001") == records[-1]

    def test_histories_are_separate(
        self, history: TrustHistory, store: InMemoryAnchorStore
    ) -> None:
        _record_scores(store, "anchor-001", [55.0])
        _record_scores(store, "anchor-002", [40.0, 30.0])
        assert len(history.for_anchor("anchor-001")) == 1
        assert len(history.for_anchor("anchor-002")) == 2


# ---------------------------------------------------------------------------
# trend
# ---------------------------------------------------------------------------


class TestTrustHistoryTrend:
    def test_no_records_is_stable(self, history: TrustHistory) -> None:
        assert history.trend("anchor-001") == "stable"

    def test_single_increase_is_improving(
        self, history: TrustHistory, store: InMemoryAnchorStore
    ) -> None:
        _record_scores(store, "anchor-001", [76.96])
        assert history.trend("anchor-001") == "improving"

    def test_decreasing_scores_are_declining(
        self, history: TrustHistory, store: InMemoryAnchorStore
    ) -> None:
        _record_scores(store, "anchor-001", [45.0, 40.0, 35.0])
        assert history.trend("anchor-001") == "declining"

    def test_small_movement_is_stable(
        self, history: TrustHistory, store: InMemoryAnchorStore
    ) -> None:
        _record_scores(store, "anchor-001", [52.0, 51.0, 52.5])
        assert history.trend("anchor-001") == "stable"

    def test_threshold_is_inclusive(
        self, history: TrustHistory, store: InMemoryAnchorStore
    ) -> None:
        _record_scores(store, "anchor-001", [53.0])
        assert history.trend("anchor-001") == "improving"

    def test_only_recent_window_counts(self, store: InMemoryAnchorStore) -> None:
        history = TrustHistory(store, trend_window=2)
        _record_scores(store, "anchor-001", [80.0, 90.0, 89.0, 88.0])
        assert history.trend("anchor-001") == "stable"

    def test_custom_threshold(self, store: InMemoryAnchorStore) -> None:
        history = TrustHistory(store, trend_threshold=10.0)
        _record_scores(store, "anchor-001", [55.0])
        assert history.trend("anchor-001") == "stable"
