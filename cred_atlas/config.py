"""
cred_atlas/config.py — All tunable parameters for Cred Atlas.

Every directory name, environment variable and worker count lives here so
that deployment changes are a single-file diff.
"""

import os
from dataclasses import dataclass, replace


@dataclass(frozen=True)
class CredAtlasConfig:
    """
    Immutable configuration for the Cred Atlas load pipeline.

    Override by constructing a new CredAtlasConfig with the desired values,
    or by calling from_env() to pick up the process environment.
    """

    # ── Data directory ────────────────────────────────────────────────────────
    data_directory: str = "cred_atlas_data"
    # Root of the cache and project storage. Cache databases live under
    # <data_directory>/cache, project artifacts under <data_directory>/projects.

    cache_subdirectory: str = "cache"
    projects_subdirectory: str = "projects"

    # ── Credentials and source locations ──────────────────────────────────────
    github_token: str | None = None
    # Required whenever a project names at least one repository.

    initiatives_directory: str | None = None
    # Local checkout of the initiatives set. Required whenever a project
    # configures initiatives.

    # ── Environment variable names ────────────────────────────────────────────
    data_directory_env: str = "CRED_ATLAS_DIRECTORY"
    github_token_env: str = "GITHUB_TOKEN"
    initiatives_directory_env: str = "INITIATIVES_DIRECTORY"

    # ── Concurrency ───────────────────────────────────────────────────────────
    max_workers: int = 4
    # Thread pool size for the per-source mirror and graph stages. There are
    # at most three concurrent sources, so anything >= 3 runs them all at once.

    def from_env(self, environ=None) -> "CredAtlasConfig":
        """Return a copy with values taken from the environment where set."""
        environ = os.environ if environ is None else environ
        return replace(
            self,
            data_directory=environ.get(self.data_directory_env) or self.data_directory,
            github_token=environ.get(self.github_token_env) or self.github_token,
            initiatives_directory=(
                environ.get(self.initiatives_directory_env) or self.initiatives_directory
            ),
        )


# Singleton default; import this everywhere instead of constructing anew.
DEFAULT_CONFIG = CredAtlasConfig()
