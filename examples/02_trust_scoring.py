#!/usr/bin/env python3
"""Example: Trust Scoring

Demonstrates the composite trust score using TrustScorer and TrustPolicy
directly on a DNA profile, without any storage.

Usage:
    python examples/02_trust_scoring.py

Requirements:
    pip install context-anchor
"""
from __future__ import annotations

import context_anchor
from context_anchor import DNAProfile, TrustFactor, TrustPolicy, TrustScorer


def main() -> None:
    print(f"context-anchor version: {context_anchor.__version__}")

    # Step 1: A profile after a dozen interactions, nine of them successful
    profile = DNAProfile(
        anchor_id="example-anchor",
        total_interactions=12,
        success_rate=0.75,
        outcomes_successful=9,
        outcomes_failed=3,
    )

    # Step 2: Score with the default policy
    score = TrustScorer().score(profile)
    print(f"\nDefault policy: {score.composite:.2f} ({score.level.name})")
    for item in score.factor_breakdown():
        print(f"  {item['name']:<8} score={item['score']:6.2f} weight={item['weight']:.2f}")

    # Step 3: A stricter policy that weighs outcomes more heavily
    strict = TrustPolicy(
        factor_weights={
            TrustFactor.VOLUME: 0.10,
            TrustFactor.SUCCESS: 0.50,
            TrustFactor.ANOMALY: 0.20,
            TrustFactor.QUALITY: 0.10,
            TrustFactor.RECENCY: 0.10,
        },
        anomaly_penalty=20.0,
    )
    strict_score = TrustScorer(strict).score(profile)
    print(f"\nStrict policy:  {strict_score.composite:.2f} ({strict_score.level.name})")

    print("\nTrust scoring complete.")


if __name__ == "__main__":
    main()
