"""
cred_atlas/core/compat.py — Versioned JSON envelopes.

Every persisted document is a two-element list:

    [{"type": "cred_atlas/project", "version": "0.5.0"}, <payload>]

Readers name the type and current version they expect, plus an upgrade table
for legacy versions. The table maps each legacy version tag to a pair
(next_version, upgrade_fn); upgrade_fn is a pure function from the payload
shape of that version to the payload shape of next_version. from_compat()
walks the chain until it reaches the current version. Versions are never
inferred from the payload's structure.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable

from cred_atlas.errors import CompatError

logger = logging.getLogger(__name__)

Upgrades = dict[str, tuple[str, Callable[[Any], Any]]]


@dataclass(frozen=True)
class CompatInfo:
    type: str
    version: str


def to_compat(info: CompatInfo, payload: Any) -> list:
    return [{"type": info.type, "version": info.version}, payload]


def from_compat(info: CompatInfo, document: Any, upgrades: Upgrades | None = None) -> Any:
    """
    Unwrap a compat envelope, upgrading legacy payloads to info.version.

    Raises:
        CompatError: The envelope is malformed, its type does not match
                     info.type, or its version is neither current nor a key
                     of upgrades (directly or through the chain).
    """
    if (
        not isinstance(document, (list, tuple))
        or len(document) != 2
        or not isinstance(document[0], dict)
    ):
        raise CompatError(f"Malformed compat document for {info.type!r}")

    header, payload = document
    doc_type = header.get("type")
    version = header.get("version")
    if doc_type != info.type:
        raise CompatError(f"Expected type {info.type!r}, got {doc_type!r}")

    upgrades = upgrades or {}
    seen: set[str] = set()
    while version != info.version:
        if version not in upgrades or version in seen:
            raise CompatError(f"{info.type}: unsupported version {version!r}")
        seen.add(version)
        next_version, upgrade = upgrades[version]
        logger.debug("Upgrading %s from %s to %s.", info.type, version, next_version)
        payload = upgrade(payload)
        version = next_version
    return payload
