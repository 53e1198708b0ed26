"""
cred_atlas/backend/plugin_loaders.py — Driving every applicable source through the load stages.

Stages, in order:

    update_mirror              concurrent per source   -> CachedProject
    create_reference_detector  sequential              -> CascadingReferenceDetector
    create_plugin_graphs       concurrent per source   -> PluginGraphs
    contract_plugin_graphs     synchronous             -> WeightedGraph

Which sources take part is a pure function of the Project (applicable_sources):

    github       project.repo_ids is non-empty
    discourse    project.discourse_server is set
    initiatives  project.initiatives is set

The identity source never mirrors or builds a graph; it only contributes a
declaration and contracts the merged graph when the project has identities.

A concurrent stage waits for every task it launched. If any failed, each
failure is logged and the first one in source order is raised; no partial
result escapes.
"""

import enum
import logging
from concurrent.futures import ALL_COMPLETED, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Any, Callable, Optional

from cred_atlas.analysis.plugin_declaration import PluginDeclaration
from cred_atlas.backend.data_directory import CacheProvider
from cred_atlas.backend.task_reporter import TaskReporter
from cred_atlas.config import DEFAULT_CONFIG, CredAtlasConfig
from cred_atlas.core.project import Project
from cred_atlas.core.references import CascadingReferenceDetector, ReferenceDetector
from cred_atlas.core.weighted_graph import WeightedGraph, merge
from cred_atlas.errors import ConfigurationError, CredAtlasError, SourceIOError
from cred_atlas.plugins.discourse import DiscourseLoader
from cred_atlas.plugins.github import GithubLoader
from cred_atlas.plugins.identity import IdentityLoader, IdentityMerges
from cred_atlas.plugins.initiatives import (
    InitiativesDirectory,
    InitiativesLoader,
    LoadedInitiativesDirectory,
)

logger = logging.getLogger(__name__)


class SourceKind(enum.Enum):
    GITHUB = "github"
    DISCOURSE = "discourse"
    INITIATIVES = "initiatives"


@dataclass
class PluginLoaders:
    github: GithubLoader
    discourse: DiscourseLoader
    identity: IdentityLoader
    initiatives: InitiativesLoader


@dataclass(frozen=True)
class MirrorEnv:
    """
    Everything the mirror stage needs besides the project.

    Fields:
        github_token:           Required if the project names repositories.
        initiatives_directory:  Local checkout of the initiatives set; required
                                if the project configures initiatives.
        reporter:               Progress sink shared by all sources.
        cache:                  Cache provider shared by all sources.
    """

    github_token: Optional[str]
    initiatives_directory: Optional[str]
    reporter: TaskReporter
    cache: CacheProvider


@dataclass(frozen=True)
class GraphEnv:
    github_token: Optional[str]


@dataclass(frozen=True)
class CachedProject:
    """A project whose sources have been mirrored into cache."""

    project: Project
    cache: CacheProvider
    loaded_initiatives_directory: Optional[LoadedInitiativesDirectory] = None


@dataclass(frozen=True)
class PluginGraphs:
    """One WeightedGraph per applicable source, in source order."""

    graphs: tuple[WeightedGraph, ...]
    cached_project: CachedProject


def applicable_sources(project: Project) -> list[SourceKind]:
    """Sources with data to load for project, in fixed order."""
    sources: list[SourceKind] = []
    if project.repo_ids:
        sources.append(SourceKind.GITHUB)
    if project.discourse_server is not None:
        sources.append(SourceKind.DISCOURSE)
    if project.initiatives is not None:
        sources.append(SourceKind.INITIATIVES)
    return sources


def declarations(loaders: PluginLoaders, project: Project) -> list[PluginDeclaration]:
    """
    Declarations of the sources that apply to project.

    Order: github, discourse, identity (only when the project has
    identities), initiatives.
    """
    sources = applicable_sources(project)
    result: list[PluginDeclaration] = []
    if SourceKind.GITHUB in sources:
        result.append(loaders.github.declaration())
    if SourceKind.DISCOURSE in sources:
        result.append(loaders.discourse.declaration())
    if project.identities:
        result.append(loaders.identity.declaration())
    if SourceKind.INITIATIVES in sources:
        result.append(loaders.initiatives.declaration())
    return result


# ── Preconditions ─────────────────────────────────────────────────────────────

def _require_github_token(token: Optional[str]) -> str:
    if not token:
        raise ConfigurationError(
            "Tried to load GitHub, but no GitHub token set (GITHUB_TOKEN)"
        )
    return token


def _require_initiatives_directory(
    project: Project, local_path: Optional[str]
) -> InitiativesDirectory:
    if not local_path:
        raise ConfigurationError(
            "Tried to load initiatives, but no initiatives directory set "
            "(INITIATIVES_DIRECTORY)"
        )
    return InitiativesDirectory(
        local_path=local_path, remote_url=project.initiatives.remote_url
    )


def _require_loaded_initiatives(cached_project: CachedProject) -> LoadedInitiativesDirectory:
    loaded = cached_project.loaded_initiatives_directory
    if loaded is None:
        raise ConfigurationError(
            f"Project {cached_project.project.id!r} configures initiatives, "
            "but its mirror produced no loaded initiatives directory"
        )
    return loaded


# ── Joint execution ───────────────────────────────────────────────────────────

def _run_jointly(
    stage: str,
    tasks: list[tuple[SourceKind, Callable[[], Any]]],
    max_workers: int,
) -> dict[SourceKind, Any]:
    """
    Run every task on a thread pool and wait for all of them to settle.

    Returns:
        {source: task result} when every task succeeded.

    Raises:
        CredAtlasError: The first failure in task order. Errors outside the
                        CredAtlasError hierarchy are wrapped in SourceIOError.
    """
    if not tasks:
        return {}

    logger.info(
        "Stage %s: running %d sources (%s).",
        stage,
        len(tasks),
        ", ".join(source.value for source, _ in tasks),
    )
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = [(source, executor.submit(fn)) for source, fn in tasks]
        wait([future for _, future in futures], return_when=ALL_COMPLETED)

    failures = [
        (source, future.exception())
        for source, future in futures
        if future.exception() is not None
    ]
    for source, exc in failures:
        logger.warning("Stage %s: %s failed: %s", stage, source.value, exc)
    if failures:
        source, exc = failures[0]
        if isinstance(exc, CredAtlasError):
            raise exc
        raise SourceIOError(source.value, f"{stage} failed: {exc}") from exc

    return {source: future.result() for source, future in futures}


def _call(source: SourceKind, stage: str, fn: Callable[[], Any]) -> Any:
    """Run one adapter call inline, with the same error wrapping as _run_jointly."""
    try:
        return fn()
    except CredAtlasError:
        raise
    except Exception as exc:
        raise SourceIOError(source.value, f"{stage} failed: {exc}") from exc


# ── Stages ────────────────────────────────────────────────────────────────────

def update_mirror(
    loaders: PluginLoaders,
    env: MirrorEnv,
    project: Project,
    config: CredAtlasConfig = DEFAULT_CONFIG,
) -> CachedProject:
    """
    Mirror every applicable source into env.cache, concurrently.

    All preconditions are checked before any source starts.

    Raises:
        ConfigurationError: An applicable source lacks its token or directory.
        CredAtlasError:     Any source's mirror failed (see _run_jointly).
    """
    sources = applicable_sources(project)
    tasks: list[tuple[SourceKind, Callable[[], Any]]] = []

    if SourceKind.GITHUB in sources:
        token = _require_github_token(env.github_token)
        tasks.append(
            (
                SourceKind.GITHUB,
                lambda: loaders.github.update_mirror(
                    project.repo_ids, token, env.cache, env.reporter
                ),
            )
        )
    if SourceKind.DISCOURSE in sources:
        tasks.append(
            (
                SourceKind.DISCOURSE,
                lambda: loaders.discourse.update_mirror(
                    project.discourse_server, env.cache, env.reporter
                ),
            )
        )
    if SourceKind.INITIATIVES in sources:
        directory = _require_initiatives_directory(project, env.initiatives_directory)
        tasks.append(
            (
                SourceKind.INITIATIVES,
                lambda: loaders.initiatives.load_directory(directory, env.reporter),
            )
        )

    results = _run_jointly("mirror", tasks, config.max_workers)
    return CachedProject(
        project=project,
        cache=env.cache,
        loaded_initiatives_directory=results.get(SourceKind.INITIATIVES),
    )


def create_reference_detector(
    loaders: PluginLoaders, env: GraphEnv, cached_project: CachedProject
) -> CascadingReferenceDetector:
    """
    Compose the applicable sources' detectors: github, then discourse, then
    initiatives. The first child to resolve a token wins.
    """
    project = cached_project.project
    cache = cached_project.cache
    sources = applicable_sources(project)
    children: list[ReferenceDetector] = []

    if SourceKind.GITHUB in sources:
        token = _require_github_token(env.github_token)
        children.append(
            _call(
                SourceKind.GITHUB,
                "reference detector",
                lambda: loaders.github.reference_detector(project.repo_ids, token, cache),
            )
        )
    if SourceKind.DISCOURSE in sources:
        children.append(
            _call(
                SourceKind.DISCOURSE,
                "reference detector",
                lambda: loaders.discourse.reference_detector(project.discourse_server, cache),
            )
        )
    if SourceKind.INITIATIVES in sources:
        children.append(_require_loaded_initiatives(cached_project).reference_detector)

    logger.debug("Reference detector composed from %d sources.", len(children))
    return CascadingReferenceDetector(children)


def create_plugin_graphs(
    loaders: PluginLoaders,
    env: GraphEnv,
    cached_project: CachedProject,
    reference_detector: ReferenceDetector,
    config: CredAtlasConfig = DEFAULT_CONFIG,
) -> PluginGraphs:
    """
    Build one WeightedGraph per applicable source, concurrently.

    Raises:
        ConfigurationError: GitHub applies but env has no token, or the
                            initiatives were never loaded.
        CredAtlasError:     Any source's graph construction failed.
    """
    project = cached_project.project
    cache = cached_project.cache
    sources = applicable_sources(project)
    tasks: list[tuple[SourceKind, Callable[[], Any]]] = []

    if SourceKind.GITHUB in sources:
        token = _require_github_token(env.github_token)
        tasks.append(
            (
                SourceKind.GITHUB,
                lambda: loaders.github.create_graph(project.repo_ids, token, cache),
            )
        )
    if SourceKind.DISCOURSE in sources:
        tasks.append(
            (
                SourceKind.DISCOURSE,
                lambda: loaders.discourse.create_graph(project.discourse_server, cache),
            )
        )
    if SourceKind.INITIATIVES in sources:
        loaded = _require_loaded_initiatives(cached_project)
        tasks.append(
            (
                SourceKind.INITIATIVES,
                lambda: loaders.initiatives.create_graph(loaded.initiatives, reference_detector),
            )
        )

    results = _run_jointly("graph", tasks, config.max_workers)
    return PluginGraphs(
        graphs=tuple(results[source] for source, _ in tasks),
        cached_project=cached_project,
    )


def contract_plugin_graphs(loaders: PluginLoaders, plugin_graphs: PluginGraphs) -> WeightedGraph:
    """
    Merge the per-source graphs and contract the project's identities.

    With no identities the merged graph itself is returned.

    Raises:
        GraphMergeError:    Two sources claimed the same address.
        ConfigurationError: An identity alias cannot be resolved.
    """
    merged = merge(plugin_graphs.graphs)
    project = plugin_graphs.cached_project.project
    if not project.identities:
        return merged

    server_url = (
        project.discourse_server.server_url
        if project.discourse_server is not None
        else None
    )
    merges = IdentityMerges(identities=project.identities, discourse_server_url=server_url)
    return loaders.identity.contract_identities(merged, merges)
