"""Global identifier minting: authority client, local fallback, and validator.

Identifiers have eight ``-``-separated segments::

    VV-G-LLL-SSSS-T-YYMM-C-X
    03-1-USA-7F3A-P-2610-4-Q

version, geography, locale, sequence, entity type, year-month, and two
check tags. The authority issues them normally; when it cannot be reached
:class:`LocalIdentifierFactory` builds one in the same format so that the
same :func:`validate_global_id` accepts both.
"""
from __future__ import annotations

import datetime
import hashlib
import logging
import re
import string
from typing import Any, NamedTuple, Protocol

import httpx

from context_anchor.errors import MintingUnavailableError

logger = logging.getLogger(__name__)

GLOBAL_ID_PATTERN = re.compile(
    r"^(?P<version>\d{2})-(?P<geography>\d)-(?P<locale>[A-Z]{3})-(?P<sequence>[A-Z0-9]{4})"
    r"-(?P<entity_type>[A-Z])-(?P<yymm>\d{4})-(?P<check>[0-9A-Z])-(?P<tag>[0-9A-Z]{1,2})$"
)

_BASE36 = string.digits + string.ascii_uppercase


class GlobalIdParts(NamedTuple):
    version: str
    geography: str
    locale: str
    sequence: str
    entity_type: str
    yymm: str
    check: str
    tag: str


def parse_global_id(value: str) -> GlobalIdParts | None:
    """Split *value* into its segments, or return None if it is malformed."""
    match = GLOBAL_ID_PATTERN.match(value or "")
    if match is None:
        return None
    parts = GlobalIdParts(**match.groupdict())
    if not 1 <= int(parts.yymm[2:]) <= 12:
        return None
    return parts


def validate_global_id(value: str) -> bool:
    """Return True when *value* is a structurally valid global identifier."""
    return parse_global_id(value) is not None


# ------------------------------------------------------------------
# Authority
# ------------------------------------------------------------------


class MintingAuthority(Protocol):
    """Anything that can issue a new global identifier."""

    def mint(self, entity_type: str, characterization: str, metadata: dict[str, Any]) -> str:
        """Return a new global identifier.

        Raises
        ------
        MintingUnavailableError
            If no identifier could be obtained.
        """
        ...


class HttpMintingAuthority:
    """Minting authority reached over HTTP.

    Sends ``POST {base_url}/api/v1/mint`` with a JSON body of
    ``entity_type``, ``characterization`` and ``metadata`` and expects a
    JSON response carrying the identifier under ``chitty_id``, ``global_id``
    or ``id``.

    Parameters
    ----------
    base_url:
        Root URL of the authority.
    token:
        Optional bearer token.
    timeout:
        Seconds before the request is abandoned.
    client:
        Pre-built :class:`httpx.Client` (mainly for tests). When omitted a
        client is created per call and closed afterwards.
    """

    _ID_KEYS = ("chitty_id", "global_id", "id")

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        timeout: float = 5.0,
        client: httpx.Client | None = None,
    ) -> None:
        self._url = base_url.rstrip("/") + "/api/v1/mint"
        self._token = token
        self._timeout = timeout
        self._client = client

    def mint(self, entity_type: str, characterization: str, metadata: dict[str, Any]) -> str:
        headers = {"Content-Type": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        body = {
            "entity_type": entity_type,
            "characterization": characterization,
            "metadata": metadata,
        }
        try:
            if self._client is not None:
                response = self._client.post(
                    self._url, json=body, headers=headers, timeout=self._timeout
                )
            else:
                with httpx.Client(timeout=self._timeout) as client:
                    response = client.post(self._url, json=body, headers=headers)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as exc:
            raise MintingUnavailableError(
                f"Minting authority returned HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise MintingUnavailableError(f"Minting authority unreachable: {exc}") from exc
        except ValueError as exc:
            raise MintingUnavailableError("Minting authority returned non-JSON body") from exc

        global_id = None
        if isinstance(data, dict):
            global_id = next((data[k] for k in self._ID_KEYS if data.get(k)), None)
        if not isinstance(global_id, str) or not validate_global_id(global_id):
            raise MintingUnavailableError(
                f"Minting authority returned a malformed identifier: {global_id!r}"
            )
        return global_id


# ------------------------------------------------------------------
# Local fallback
# ------------------------------------------------------------------


class LocalIdentifierFactory:
    """Builds identifiers locally when the authority cannot be used.

    The sequence segment is four hex digits of ``sha256(anchor_hash:salt)``,
    so the same anchor hash, salt and month always give the same identifier.
    The two trailing tags are check characters over the first six segments:
    ``check`` is the character-code sum mod 10 and ``tag`` is one base-36
    digit of the body's SHA-256.

    Parameters
    ----------
    version, geography, locale, entity_type:
        Fixed segment values.
    """

    def __init__(
        self,
        version: str = "03",
        geography: str = "1",
        locale: str = "USA",
        entity_type: str = "P",
    ) -> None:
        self._prefix = (version, geography, locale)
        self._entity_type = entity_type

    def generate(
        self,
        anchor_hash: str,
        now: datetime.datetime | None = None,
        salt: int = 0,
    ) -> str:
        """Return the local identifier for *anchor_hash*."""
        moment = now or datetime.datetime.now(datetime.timezone.utc)
        digest = hashlib.sha256(f"{anchor_hash}:{salt}".encode("utf-8")).hexdigest()
        sequence = digest[:4].upper()
        body = "-".join((*self._prefix, sequence, self._entity_type, moment.strftime("%y%m")))
        check, tag = self._check_tags(body)
        return f"{body}-{check}-{tag}"

    @staticmethod
    def _check_tags(body: str) -> tuple[str, str]:
        check = str(sum(ord(ch) for ch in body) % 10)
        tag = _BASE36[hashlib.sha256(body.encode("utf-8")).digest()[0] % 36]
        return check, tag

    def is_local(self, value: str) -> bool:
        """Return True when *value*'s check tags match the local scheme."""
        parts = parse_global_id(value)
        if parts is None:
            return False
        body = "-".join(parts[:6])
        return (parts.check, parts.tag) == self._check_tags(body)


__all__ = [
    "GLOBAL_ID_PATTERN",
    "GlobalIdParts",
    "HttpMintingAuthority",
    "LocalIdentifierFactory",
    "MintingAuthority",
    "parse_global_id",
    "validate_global_id",
]
