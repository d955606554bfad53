"""End-to-end scenarios through the ContextEngine facade."""

from __future__ import annotations

import dataclasses
import threading
import time
from typing import Any

import pytest

from context_anchor.config import EngineSettings
from context_anchor.dna.profile import DNAProfile
from context_anchor.engine import NOT_ENOUGH_EVIDENCE, ContextEngine
from context_anchor.errors import ErrorKind
from context_anchor.identity.anchor import AnchorIssuer
from context_anchor.identity.resolver import ResolutionAction
from context_anchor.store import InMemoryAnchorStore

MINTED_ID = "03-1-USA-1A2B-P-2610-7-K"
HINTS = {"project_path": "/srv/app", "workspace": "main"}


class StubAuthority:
    def mint(self, entity_type: str, characterization: str, metadata: dict[str, Any]) -> str:
        return MINTED_ID


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _new_anchor(engine: ContextEngine, hints: dict[str, str] = HINTS) -> str:
    resolution = engine.resolve(hints)
    assert resolution.ok and resolution.value is not None
    assert resolution.value.pending_anchor is not None
    created = engine.create_anchor(resolution.value.pending_anchor)
    assert created.ok and created.value is not None
    return created.value.anchor_id


@pytest.fixture()
def store() -> InMemoryAnchorStore:
    return InMemoryAnchorStore()


@pytest.fixture()
def engine(store: InMemoryAnchorStore) -> ContextEngine:
    return ContextEngine(store)


# ---------------------------------------------------------------------------
# Session lifecycle
# ---------------------------------------------------------------------------


class TestSessionLifecycle:
    def test_first_session_evolves_trust(self, engine: ContextEngine) -> None:
        anchor_id = _new_anchor(engine)
        assert engine.bind_session(anchor_id, "s-1", "cli").ok
        unbound = engine.unbind_session("s-1", {"interactions": 12, "successes": 9})
        assert unbound.ok

        anchor = engine.get_anchor(anchor_id).value
        assert anchor is not None
        assert anchor.trust_level == 4
        assert anchor.trust_score == pytest.approx(76.96, abs=0.05)
        assert anchor.current_sessions == []

        records = engine.trust_records(anchor_id).value
        assert records is not None and len(records) == 1
        assert records[0].previous_level == 3

    def test_evidence_gate_after_automatic_evolution(self, engine: ContextEngine) -> None:
        anchor_id = _new_anchor(engine)
        engine.bind_session(anchor_id, "s-1")
        engine.unbind_session("s-1", {"interactions": 12, "successes": 9})
        result = engine.maybe_evolve(anchor_id)
        assert result.ok
        assert result.kind is ErrorKind.INSUFFICIENT_DATA
        assert result.message == NOT_ENOUGH_EVIDENCE

    def test_ledger_records_whole_lifecycle(self, engine: ContextEngine) -> None:
        anchor_id = _new_anchor(engine)
        engine.bind_session(anchor_id, "s-1")
        engine.unbind_session("s-1", {"interactions": 12, "successes": 9})
        types = [e.event_type for e in engine.ledger.entries(anchor_id)]
        assert types == [
            "created",
            "session_start",
            "dna_accumulated",
            "trust_evolved",
            "session_end",
        ]
        verification = engine.verify_ledger(anchor_id)
        assert verification.ok
        assert verification.value is not None
        assert verification.value.entries_checked == 5

    def test_returning_session_binds_existing_anchor(self, engine: ContextEngine) -> None:
        anchor_id = _new_anchor(engine)
        resolution = engine.resolve({**HINTS, "session_id": "s-2", "platform": "web"}).value
        assert resolution is not None
        assert resolution.action is ResolutionAction.BIND_EXISTING
        assert resolution.anchor is not None
        assert resolution.anchor.anchor_id == anchor_id

    def test_authority_identifier_used(self, store: InMemoryAnchorStore) -> None:
        engine = ContextEngine(store, authority=StubAuthority())
        anchor_id = _new_anchor(engine)
        assert anchor_id == MINTED_ID
        anchor = engine.get_anchor(anchor_id).value
        assert anchor is not None
        assert anchor.issuer is AnchorIssuer.AUTHORITY

    def test_confirming_creation_twice_is_idempotent(self, engine: ContextEngine) -> None:
        pending = engine.resolve(HINTS).value
        assert pending is not None and pending.pending_anchor is not None
        first = engine.create_anchor(pending.pending_anchor)
        second = engine.create_anchor(pending.pending_anchor)
        assert first.ok and second.ok
        assert first.value is not None and second.value is not None
        assert second.value.anchor_id == first.value.anchor_id
        assert engine.ledger.verify(first.value.anchor_id).entries_checked == 1


# ---------------------------------------------------------------------------
# Failures come back as results
# ---------------------------------------------------------------------------


class TestFailureResults:
    def test_unknown_anchor_is_not_found(self, engine: ContextEngine) -> None:
        result = engine.get_anchor("ghost")
        assert not result.ok
        assert result.kind is ErrorKind.NOT_FOUND

    def test_empty_hints_are_insufficient(self, engine: ContextEngine) -> None:
        result = engine.resolve({})
        assert not result.ok
        assert result.kind is ErrorKind.INSUFFICIENT_DATA

    def test_unknown_status_is_invalid_input(self, engine: ContextEngine) -> None:
        anchor_id = _new_anchor(engine)
        result = engine.set_status(anchor_id, "vanished")
        assert result.kind is ErrorKind.INSUFFICIENT_DATA
        assert result.message is not None and result.message.startswith("invalid input")

    def test_retired_anchor_stops_resolving(self, engine: ContextEngine) -> None:
        anchor_id = _new_anchor(engine)
        assert engine.set_status(anchor_id, "retired", "merged").ok
        assert engine.get_anchor(anchor_id).kind is ErrorKind.NOT_FOUND
        assert engine.maybe_evolve(anchor_id).kind is ErrorKind.NOT_FOUND
        again = engine.set_status(anchor_id, "active")
        assert again.kind is ErrorKind.INVARIANT_VIOLATION

    def test_session_conflict_is_invariant_violation(self, engine: ContextEngine) -> None:
        first = _new_anchor(engine)
        second = _new_anchor(engine, {"project_path": "/srv/other"})
        engine.bind_session(first, "s-1")
        result = engine.bind_session(second, "s-1")
        assert result.kind is ErrorKind.INVARIANT_VIOLATION

    def test_accumulate_unknown_anchor(self, engine: ContextEngine) -> None:
        assert engine.accumulate("ghost", {"interactions": 1}).kind is ErrorKind.NOT_FOUND

    def test_to_dict_of_failure(self, engine: ContextEngine) -> None:
        data = engine.get_anchor("ghost").to_dict()
        assert data["ok"] is False
        assert data["kind"] == "not_found"


# ---------------------------------------------------------------------------
# Ledger integrity
# ---------------------------------------------------------------------------


class TestLedgerIntegrity:
    def test_tampering_is_reported(
        self, engine: ContextEngine, store: InMemoryAnchorStore
    ) -> None:
        anchor_id = _new_anchor(engine)
        engine.bind_session(anchor_id, "s-1")
        chain = store._ledger[anchor_id]
        chain[1] = dataclasses.replace(chain[1], payload={"platform": "forged"})

        result = engine.verify_ledger(anchor_id)
        assert not result.ok
        assert result.kind is ErrorKind.INVARIANT_VIOLATION
        assert result.value is not None
        assert result.value.broken_at == 1

        attestation = engine.attest_ledger(anchor_id)
        assert attestation.kind is ErrorKind.INVARIANT_VIOLATION

    def test_attestation_verifies(self, engine: ContextEngine) -> None:
        anchor_id = _new_anchor(engine)
        attestation = engine.attest_ledger(anchor_id).value
        assert attestation is not None
        assert engine.attestor.verify(attestation)


# ---------------------------------------------------------------------------
# Behavior and archetype through the facade
# ---------------------------------------------------------------------------


class TestAssessmentFlow:
    def test_exposure_assessment_and_summary(self, engine: ContextEngine) -> None:
        anchor_id = _new_anchor(engine)
        assert engine.log_exposure(anchor_id, "x.com", "chat", interactions=25).ok
        assessment = engine.assess(anchor_id).value
        assert assessment is not None
        assert any(f.source == "x.com" for f in assessment.red_flags)

        summary = engine.behavior_summary(anchor_id).value
        assert summary is not None
        assert summary["red_flag_count"] == len(assessment.red_flags)
        assert summary["top_exposures"][0]["source"] == "x.com"

        event_id = assessment.events[-1].event_id
        assert engine.acknowledge_event(event_id).value is True

    def test_unknown_interaction_type(self, engine: ContextEngine) -> None:
        anchor_id = _new_anchor(engine)
        result = engine.log_exposure(anchor_id, "x.com", "shout")
        assert result.kind is ErrorKind.INSUFFICIENT_DATA

    def test_classification(self, engine: ContextEngine) -> None:
        anchor_id = _new_anchor(engine)
        engine.accumulate(anchor_id, {"interactions": 40, "successes": 38, "domains": ["api"]})
        classification = engine.classify(anchor_id).value
        assert classification is not None
        assert classification.archetype.name in {a for a, _ in classification.ranking}

    def test_concerns_listing(self, engine: ContextEngine) -> None:
        anchor_id = _new_anchor(engine)
        engine.accumulate(anchor_id, {"anomalies": 9})
        concerns = engine.anchors_with_concerns().value
        assert concerns is not None
        assert [c["anchor_id"] for c in concerns] == [anchor_id]


# ---------------------------------------------------------------------------
# Concurrency
# ---------------------------------------------------------------------------


class TestConcurrentSessions:
    def test_parallel_unbinds_lose_no_interactions(self, store: InMemoryAnchorStore) -> None:
        engine = ContextEngine(store, EngineSettings(max_update_retries=100))
        anchor_id = _new_anchor(engine)
        sessions = [f"s-{i}" for i in range(8)]
        for session_id in sessions:
            assert engine.bind_session(anchor_id, session_id).ok

        results: list[bool] = []

        def unbind(session_id: str) -> None:
            result = engine.unbind_session(session_id, {"interactions": 5, "successes": 4})
            results.append(result.ok)

        threads = [threading.Thread(target=unbind, args=(s,)) for s in sessions]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert results == [True] * len(sessions)
        profile = engine.dna_profile(anchor_id).value
        assert profile is not None
        assert profile.total_interactions == 40
        assert profile.outcomes_successful == 32
        assert engine.verify_ledger(anchor_id).ok

    def test_parallel_unbinds_of_one_session_commit_once(self, engine: ContextEngine) -> None:
        anchor_id = _new_anchor(engine)
        assert engine.bind_session(anchor_id, "s-1").ok

        def slow_listener(listened_id: str, profile: DNAProfile) -> None:
            time.sleep(0.2)

        engine.accumulator.add_listener(slow_listener)
        start = threading.Barrier(2)
        kinds: list[ErrorKind | None] = []

        def unbind() -> None:
            start.wait()
            result = engine.unbind_session("s-1", {"interactions": 5, "successes": 5})
            kinds.append(result.kind)

        threads = [threading.Thread(target=unbind) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert kinds.count(None) == 1
        assert kinds.count(ErrorKind.NOT_FOUND) == 1
        profile = engine.dna_profile(anchor_id).value
        assert profile is not None
        assert profile.total_interactions == 5
