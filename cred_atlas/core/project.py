"""
cred_atlas/core/project.py — The Project: which sources a cred analysis covers.

A Project has an id (unique across one user's projects) and names the data
sources to load: code-hosting repositories, an optional discussion forum
server, manual identity merges, and an optional initiatives set.

Persisted projects carry a compat header (see cred_atlas.core.compat).
Version history of the payload:

    0.3.0  discourseServer = {serverUrl, apiUsername} | null
    0.3.1  discourseServer.apiUsername becomes optional
    0.4.0  discourseServer = {serverUrl} | null  (apiUsername dropped)
    0.5.0  adds initiatives = {remoteUrl} | null  (current)
"""

import base64
from dataclasses import dataclass

from cred_atlas.core.compat import CompatInfo, Upgrades, from_compat, to_compat

ProjectId = str

COMPAT_INFO = CompatInfo(type="cred_atlas/project", version="0.5.0")


@dataclass(frozen=True)
class RepoId:
    owner: str
    name: str

    def __str__(self) -> str:
        return f"{self.owner}/{self.name}"


@dataclass(frozen=True)
class DiscourseServer:
    server_url: str


@dataclass(frozen=True)
class Identity:
    """A manual merge: every alias below is the same person as username."""

    username: str
    aliases: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "aliases", tuple(self.aliases))


@dataclass(frozen=True)
class InitiativesOptions:
    remote_url: str


@dataclass(frozen=True)
class Project:
    """
    Immutable project description.

    Only id is required; every other field defaults to empty or absent.

    Raises:
        ValueError: id is empty.
    """

    id: ProjectId
    repo_ids: tuple[RepoId, ...] = ()
    discourse_server: DiscourseServer | None = None
    identities: tuple[Identity, ...] = ()
    initiatives: InitiativesOptions | None = None

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("Project.id must be set")
        # Accept lists from callers but store tuples so the value stays hashable.
        object.__setattr__(self, "repo_ids", tuple(self.repo_ids))
        object.__setattr__(self, "identities", tuple(self.identities))


def encode_project_id(project_id: ProjectId) -> str:
    """Filesystem- and URL-safe encoding of a project id (unpadded base64url)."""
    encoded = base64.urlsafe_b64encode(project_id.encode("utf-8")).decode("ascii")
    return encoded.rstrip("=")


def decode_project_id(encoded: str) -> ProjectId:
    padding = "=" * (-len(encoded) % 4)
    return base64.urlsafe_b64decode(encoded + padding).decode("utf-8")


# ── Serialisation ─────────────────────────────────────────────────────────────

def project_to_json(p: Project) -> list:
    """Serialise at the current version."""
    payload = {
        "id": p.id,
        "repoIds": [{"owner": r.owner, "name": r.name} for r in p.repo_ids],
        "discourseServer": (
            {"serverUrl": p.discourse_server.server_url}
            if p.discourse_server is not None
            else None
        ),
        "identities": [
            {"username": i.username, "aliases": list(i.aliases)} for i in p.identities
        ],
        "initiatives": (
            {"remoteUrl": p.initiatives.remote_url} if p.initiatives is not None else None
        ),
    }
    return to_compat(COMPAT_INFO, payload)


def project_from_json(document) -> Project:
    """
    Load a project persisted at any supported version.

    Raises:
        CompatError: Unknown type or version tag.
    """
    j = from_compat(COMPAT_INFO, document, UPGRADES)
    discourse = j.get("discourseServer")
    initiatives = j.get("initiatives")
    return Project(
        id=j["id"],
        repo_ids=tuple(RepoId(r["owner"], r["name"]) for r in j.get("repoIds", [])),
        discourse_server=DiscourseServer(discourse["serverUrl"]) if discourse else None,
        identities=tuple(
            Identity(i["username"], tuple(i.get("aliases", [])))
            for i in j.get("identities", [])
        ),
        initiatives=InitiativesOptions(initiatives["remoteUrl"]) if initiatives else None,
    )


# ── Upgrades ──────────────────────────────────────────────────────────────────

def _upgrade_from_030(p: dict) -> dict:
    # 0.3.1 only relaxed apiUsername to optional; every 0.3.0 payload is valid.
    return dict(p)


def _upgrade_from_031(p: dict) -> dict:
    server = p.get("discourseServer")
    return {
        **p,
        "discourseServer": {"serverUrl": server["serverUrl"]} if server is not None else None,
    }


def _upgrade_from_040(p: dict) -> dict:
    return {**p, "initiatives": None}


UPGRADES: Upgrades = {
    "0.3.0": ("0.3.1", _upgrade_from_030),
    "0.3.1": ("0.4.0", _upgrade_from_031),
    "0.4.0": ("0.5.0", _upgrade_from_040),
}
