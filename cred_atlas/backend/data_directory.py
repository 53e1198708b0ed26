"""
cred_atlas/backend/data_directory.py — Cache and project storage on disk.

Layout under the data directory root:

    cache/<source_id>.db                     one SQLite database per source
    projects/<base64url(project id)>/
        project.json                         always written
        weightedGraph.json                   if provided
        cred.json                            if provided
        pluginDeclarations.json              if provided

Every JSON file is a compat document (see cred_atlas.core.compat) and is
written atomically: write <name>.tmp, then os.replace.
"""

import json
import logging
import os
import sqlite3
import threading
from typing import Any, Callable, Protocol, Sequence

from cred_atlas.analysis import plugin_declaration
from cred_atlas.analysis.plugin_declaration import PluginDeclaration
from cred_atlas.config import DEFAULT_CONFIG, CredAtlasConfig
from cred_atlas.core.address import NodeAddress
from cred_atlas.core.distribution_to_cred import CredScores, cred_scores_to_json
from cred_atlas.core.project import (
    Project,
    ProjectId,
    decode_project_id,
    encode_project_id,
    project_from_json,
    project_to_json,
)
from cred_atlas.core.weighted_graph import WeightedGraph
from cred_atlas.core.weighted_graph import to_json as weighted_graph_to_json

logger = logging.getLogger(__name__)


class CacheProvider(Protocol):
    """Get-or-create access to one persistent store per source."""

    def database(self, source_id: str) -> sqlite3.Connection:
        ...


def _atomic_json_write(path: str, document: Any) -> None:
    """Write document as JSON atomically (write .tmp, rename)."""
    tmp = path + ".tmp"
    with open(tmp, "w", encoding="utf-8") as fh:
        json.dump(document, fh, indent=2)
    os.replace(tmp, path)


def directory_for_project_id(
    project_id: ProjectId,
    root: str,
    config: CredAtlasConfig = DEFAULT_CONFIG,
) -> str:
    return os.path.join(root, config.projects_subdirectory, encode_project_id(project_id))


class DataDirectory:
    """
    A Cred Atlas data directory: both the CacheProvider and the project
    storage provider.

    Args:
        root:   Root directory; created lazily on first write.
        config: CredAtlasConfig. Uses cache_subdirectory, projects_subdirectory.
    """

    def __init__(self, root: str, config: CredAtlasConfig = DEFAULT_CONFIG) -> None:
        self._root = root
        self._config = config
        self._cache_directory = os.path.join(root, config.cache_subdirectory)
        self._lock = threading.Lock()

    @property
    def root(self) -> str:
        return self._root

    # ── Cache ─────────────────────────────────────────────────────────────────

    def database(self, source_id: str) -> sqlite3.Connection:
        """
        Open (creating if needed) the cache database for source_id.

        Each call returns a new connection, so concurrent sources never share
        one. SQLite's file locking serialises conflicting writes.
        """
        with self._lock:
            os.makedirs(self._cache_directory, exist_ok=True)
        path = os.path.join(self._cache_directory, f"{source_id}.db")
        logger.debug("Opening cache database %s", path)
        return sqlite3.connect(path)

    # ── Project storage ───────────────────────────────────────────────────────

    def store_project(
        self,
        project: Project,
        weighted_graph: WeightedGraph | None = None,
        cred: tuple[CredScores, Sequence[NodeAddress]] | None = None,
        plugin_declarations: Sequence[PluginDeclaration] | None = None,
    ) -> str:
        """
        Write project.json and every artifact that is not None.

        Args:
            project:             Always written.
            weighted_graph:      Written to weightedGraph.json if given.
            cred:                (CredScores, node_order) written to cred.json.
            plugin_declarations: Written to pluginDeclarations.json.

        Returns:
            The project directory path.
        """
        project_directory = directory_for_project_id(project.id, self._root, self._config)
        os.makedirs(project_directory, exist_ok=True)

        writers: list[tuple[str, Any, Callable[[Any], Any]]] = [
            ("project.json", project, project_to_json),
        ]
        if weighted_graph is not None:
            writers.append(("weightedGraph.json", weighted_graph, weighted_graph_to_json))
        if cred is not None:
            writers.append(("cred.json", cred, lambda c: cred_scores_to_json(c[0], c[1])))
        if plugin_declarations is not None:
            writers.append(
                ("pluginDeclarations.json", plugin_declarations, plugin_declaration.to_json)
            )

        for file_name, value, to_json in writers:
            _atomic_json_write(os.path.join(project_directory, file_name), to_json(value))
            logger.debug("Wrote %s for project %r.", file_name, project.id)

        logger.info(
            "Stored project %r (%d files) in %s.",
            project.id,
            len(writers),
            project_directory,
        )
        return project_directory

    def load_project(self, project_id: ProjectId) -> Project:
        """
        Read and upgrade a stored project.

        Raises:
            FileNotFoundError: No project with this id is stored.
            CompatError:       The stored document's version is unknown.
        """
        path = os.path.join(
            directory_for_project_id(project_id, self._root, self._config), "project.json"
        )
        with open(path, "r", encoding="utf-8") as fh:
            return project_from_json(json.load(fh))

    def list_projects(self) -> list[ProjectId]:
        """
        Ids of every stored project, sorted.

        Entries whose name is not an encoded project id are skipped with a
        warning.
        """
        projects_directory = os.path.join(self._root, self._config.projects_subdirectory)
        if not os.path.isdir(projects_directory):
            return []
        ids: list[ProjectId] = []
        for entry in sorted(os.listdir(projects_directory)):
            if not os.path.isfile(os.path.join(projects_directory, entry, "project.json")):
                continue
            try:
                project_id = decode_project_id(entry)
            except ValueError:
                project_id = None
            if project_id is None or encode_project_id(project_id) != entry:
                logger.warning("Skipping %r in %s: not an encoded project id.", entry, projects_directory)
                continue
            ids.append(project_id)
        return sorted(ids)
