"""Unit tests for context_anchor.identity.hints — AnchorHints and the anchor hash."""
from __future__ import annotations

import pytest

from context_anchor.errors import InsufficientHintsError
from context_anchor.identity.hints import (
    AnchorHints,
    canonical_anchor_fields,
    compute_anchor_hash,
)


class TestAnchorHints:
    def test_blank_strings_become_none(self) -> None:
        hints = AnchorHints(project_path="   ", workspace="")
        assert hints.project_path is None
        assert hints.workspace is None

    def test_values_are_stripped(self) -> None:
        assert AnchorHints(workspace="  main ").workspace == "main"

    def test_stable_fields_skip_unset(self) -> None:
        hints = AnchorHints(project_path="/srv/app", session_id="s-1", platform="cli")
        assert hints.stable_fields() == {"project_path": "/srv/app"}


class TestComputeAnchorHash:
    def test_same_hints_same_hash(self) -> None:
        first = AnchorHints(project_path="/srv/app", workspace="main")
        second = AnchorHints(workspace="main", project_path="/srv/app")
        assert compute_anchor_hash(first) == compute_anchor_hash(second)

    def test_hash_is_hex_sha256(self) -> None:
        digest = compute_anchor_hash(AnchorHints(organization="acme"))
        assert len(digest) == 64
        int(digest, 16)

    def test_session_fields_do_not_affect_hash(self) -> None:
        base = AnchorHints(project_path="/srv/app")
        with_session = AnchorHints(project_path="/srv/app", session_id="s-9", platform="web")
        assert compute_anchor_hash(base) == compute_anchor_hash(with_session)

    def test_whitespace_does_not_affect_hash(self) -> None:
        assert compute_anchor_hash(AnchorHints(workspace="main")) == compute_anchor_hash(
            AnchorHints(workspace=" main  ")
        )

    def test_field_names_prevent_collisions(self) -> None:
        as_workspace = AnchorHints(workspace="acme")
        as_organization = AnchorHints(organization="acme")
        assert compute_anchor_hash(as_workspace) != compute_anchor_hash(as_organization)

    def test_different_values_differ(self) -> None:
        assert compute_anchor_hash(AnchorHints(project_path="/a")) != compute_anchor_hash(
            AnchorHints(project_path="/b")
        )

    def test_canonical_fields_are_sorted(self) -> None:
        hints = AnchorHints(workspace="w", organization="o", project_path="p")
        assert canonical_anchor_fields(hints) == [
            "organization=o",
            "project_path=p",
            "workspace=w",
        ]

    def test_no_stable_fields_raises(self) -> None:
        with pytest.raises(InsufficientHintsError):
            compute_anchor_hash(AnchorHints(session_id="s-1"))

    def test_only_blank_fields_raises(self) -> None:
        with pytest.raises(InsufficientHintsError):
            compute_anchor_hash(AnchorHints(project_path=" ", workspace=""))
