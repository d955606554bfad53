"""EngineSettings — engine configuration from code or environment.

Every setting can be passed directly; :meth:`EngineSettings.from_env`
fills them from ``CONTEXT_ANCHOR_*`` environment variables:

=====================================  ==============================
Variable                               Setting
=====================================  ==============================
``CONTEXT_ANCHOR_MINTING_URL``         ``minting_url``
``CONTEXT_ANCHOR_MINTING_TOKEN``       ``minting_token``
``CONTEXT_ANCHOR_MINTING_TIMEOUT``     ``minting_timeout``
``CONTEXT_ANCHOR_DB``                  ``database_path``
``CONTEXT_ANCHOR_MAX_RETRIES``         ``max_update_retries``
``CONTEXT_ANCHOR_RECALC_INTERVAL``     ``trust_policy.recalculation_interval``
``CONTEXT_ANCHOR_MIN_SCORE_DELTA``     ``trust_policy.min_score_delta``
``CONTEXT_ANCHOR_SOURCE_PROFILES``     JSON file loaded into ``source_profiles``
=====================================  ==============================

Unparseable numeric values fall back to the default with a warning.
"""
from __future__ import annotations

import logging
import os
from pathlib import Path

from pydantic import BaseModel, Field

from context_anchor.behavior.traits import SourceProfiles
from context_anchor.trust.policy import TrustPolicy

logger = logging.getLogger(__name__)

ENV_PREFIX = "CONTEXT_ANCHOR_"
DEFAULT_DATABASE_PATH = "context_anchor.db"


# ------------------------------------------------------------------
# Env helpers
# ------------------------------------------------------------------


def _env_str(name: str, default: str | None = None) -> str | None:
    raw = os.environ.get(ENV_PREFIX + name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip()


def _env_float(name: str, default: float) -> float:
    raw = _env_str(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("ignoring non-numeric %s%s=%r", ENV_PREFIX, name, raw)
        return default


def _env_int(name: str, default: int) -> int:
    raw = _env_str(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("ignoring non-integer %s%s=%r", ENV_PREFIX, name, raw)
        return default


class EngineSettings(BaseModel):
    """Configuration for :class:`~context_anchor.engine.ContextEngine`.

    Parameters
    ----------
    minting_url:
        Base URL of the identity minting authority. When unset every new
        anchor gets a locally generated identifier.
    minting_token:
        Optional bearer token for the authority.
    minting_timeout:
        Seconds before a minting call is abandoned.
    database_path:
        SQLite file used by :meth:`ContextEngine.from_settings`.
    max_update_retries:
        Compare-and-swap attempts for anchor and DNA updates.
    trust_policy:
        Trust evolution policy.
    source_profiles:
        Stability/compliance map for exposure sources.
    """

    minting_url: str | None = None
    minting_token: str | None = None
    minting_timeout: float = Field(default=5.0, gt=0.0)
    database_path: str = DEFAULT_DATABASE_PATH
    max_update_retries: int = Field(default=5, ge=1)
    trust_policy: TrustPolicy = Field(default_factory=TrustPolicy)
    source_profiles: SourceProfiles = Field(default_factory=SourceProfiles)

    @classmethod
    def from_env(cls) -> "EngineSettings":
        """Build settings from ``CONTEXT_ANCHOR_*`` environment variables.

        Raises
        ------
        pydantic.ValidationError
            If a value is out of range or the source-profile file is invalid.
        OSError
            If the source-profile file cannot be read.
        """
        defaults = cls()
        policy = TrustPolicy(
            recalculation_interval=_env_int(
                "RECALC_INTERVAL", defaults.trust_policy.recalculation_interval
            ),
            min_score_delta=_env_float("MIN_SCORE_DELTA", defaults.trust_policy.min_score_delta),
        )
        profiles_path = _env_str("SOURCE_PROFILES")
        if profiles_path:
            sources = SourceProfiles.model_validate_json(
                Path(profiles_path).read_text(encoding="utf-8")
            )
        else:
            sources = SourceProfiles()
        return cls(
            minting_url=_env_str("MINTING_URL"),
            minting_token=_env_str("MINTING_TOKEN"),
            minting_timeout=_env_float("MINTING_TIMEOUT", defaults.minting_timeout),
            database_path=_env_str("DB", defaults.database_path) or defaults.database_path,
            max_update_retries=_env_int("MAX_RETRIES", defaults.max_update_retries),
            trust_policy=policy,
            source_profiles=sources,
        )


__all__ = ["DEFAULT_DATABASE_PATH", "ENV_PREFIX", "EngineSettings"]
