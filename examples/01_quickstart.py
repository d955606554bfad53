#!/usr/bin/env python3
"""Example: Quickstart

Demonstrates the minimal setup for context-anchor: resolve session hints,
confirm creation of a new anchor, run one session, and watch trust evolve.

Usage:
    python examples/01_quickstart.py

Requirements:
    pip install context-anchor
"""
from __future__ import annotations

import context_anchor
from context_anchor import ContextEngine, InMemoryAnchorStore, ResolutionAction


def main() -> None:
    print(f"context-anchor version: {context_anchor.__version__}")
    engine = ContextEngine(InMemoryAnchorStore())
    hints = {"project_path": "/srv/quickstart", "workspace": "main"}

    # Step 1: Resolve hints; nothing exists yet, so creation must be confirmed
    resolution = engine.resolve(hints).value
    print(f"Resolution: {resolution.action.value} ({resolution.reason})")

    # Step 2: Confirm creation
    if resolution.action is ResolutionAction.CREATE_NEW:
        anchor = engine.create_anchor(resolution.pending_anchor).value
    else:
        anchor = resolution.anchor
    print(f"Anchor: {anchor.anchor_id} (issuer={anchor.issuer.value})")

    # Step 3: Run a session and commit its metrics
    engine.bind_session(anchor.anchor_id, "session-001", platform="cli")
    engine.unbind_session(
        "session-001",
        {"interactions": 12, "successes": 9, "competencies": ["python"], "domains": ["api"]},
    )

    # Step 4: Trust evolved automatically once enough evidence arrived
    anchor = engine.get_anchor(anchor.anchor_id).value
    print(f"Trust: {anchor.trust_score:.2f} (level {anchor.trust_level})")
    for record in engine.trust_records(anchor.anchor_id).value:
        print(f"  {record.previous_score:.2f} -> {record.new_score:.2f}, severity {record.severity}")

    # Step 5: The next session with the same hints binds the same anchor
    again = engine.resolve(hints).value
    print(f"Second resolution: {again.action.value}, confidence {again.confidence:.2f}")

    # Step 6: Verify and attest the ledger
    verification = engine.verify_ledger(anchor.anchor_id).value
    print(f"Ledger intact: {verification.valid} ({verification.entries_checked} entries)")
    attestation = engine.attest_ledger(anchor.anchor_id).value
    print(f"Attestation verifies: {engine.attestor.verify(attestation)}")

    print("\nQuickstart complete.")


if __name__ == "__main__":
    main()
