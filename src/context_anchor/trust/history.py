"""TrustHistory — read-side view of stored trust evolution records.

Provides per-anchor history and trend analysis (improving / declining /
stable) based on composite score movement.
"""
from __future__ import annotations

import datetime
from typing import TYPE_CHECKING

from context_anchor.trust.record import TrustEvolutionRecord

if TYPE_CHECKING:
    from context_anchor.store.base import AnchorStore


class TrustHistory:
    """Trust score time series backed by the anchor store.

    Parameters
    ----------
    store:
        Store holding the trust evolution records.
    trend_window:
        Number of most-recent records to use when computing the trend.
        Defaults to 5.
    trend_threshold:
        Minimum absolute change in composite score (across the trend window)
        required to call a trend "improving" or "declining". Changes smaller
        than this are considered "stable". Defaults to 3.0.
    """

    def __init__(
        self,
        store: AnchorStore,
        trend_window: int = 5,
        trend_threshold: float = 3.0,
    ) -> None:
        self._store = store
        self._trend_window = trend_window
        self._trend_threshold = trend_threshold

    def for_anchor(
        self,
        anchor_id: str,
        since: datetime.datetime | None = None,
    ) -> list[TrustEvolutionRecord]:
        """Return evolution records for an anchor, oldest first.

        Parameters
        ----------
        anchor_id:
            The anchor whose history to retrieve.
        since:
            If provided, only records at or after this UTC datetime are
            returned.
        """
        records = self._store.list_trust_records(anchor_id)
        if since is None:
            return records
        return [r for r in records if r.timestamp >= since]

    def latest(self, anchor_id: str) -> TrustEvolutionRecord | None:
        records = self._store.list_trust_records(anchor_id)
        return records[-1] if records else None

    def trend(self, anchor_id: str) -> str:
        """Compute the trust trend for an anchor over the recent window.

        The window's starting point is the score before its oldest change,
        so a single evolution already has a direction.

        Returns
        -------
        str
            One of "improving", "declining", or "stable".
        """
        records = self._store.list_trust_records(anchor_id)
        if not records:
            return "stable"

        window = records[-self._trend_window :]
        delta = window[-1].new_score - window[0].previous_score

        if delta >= self._trend_threshold:
            return "improving"
        if delta <= -self._trend_threshold:
            return "declining"
        return "stable"


__all__ = ["TrustHistory"]
