"""
cred_atlas/plugins/initiatives.py — Manually curated initiatives.

An initiatives directory is a local checkout of a repository of JSON files,
one per initiative:

    {
      "title": "Write the onboarding guide",
      "timestampIso": "2020-01-08T22:01:57.711Z",     (or "timestampMs")
      "weight": {"incomplete": 360, "complete": 420},  (optional)
      "completed": false,
      "champions":     ["https://github.com/alice"],
      "dependencies":  ["https://example.org/initiatives/other.json"],
      "references":    ["https://github.com/org/repo/issues/12"],
      "contributions": ["https://forum.example.org/t/guide/123"]
    }

Each URL is resolved to a node through the project's cascading reference
detector, so an initiative can point at nodes owned by any other source.
Unresolved URLs are skipped.

Unlike the other sources, loading the directory happens during the mirror
stage and produces an in-memory LoadedInitiativesDirectory that the later
stages consume; nothing is written to the cache.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

import networkx as nx

from cred_atlas.analysis.plugin_declaration import (
    EdgeType,
    NodeType,
    PluginDeclaration,
    weights_for_declaration,
)
from cred_atlas.backend.task_reporter import TaskReporter
from cred_atlas.core import address as addr
from cred_atlas.core.references import MappedReferenceDetector, ReferenceDetector
from cred_atlas.core.weighted_graph import WeightedGraph, add_edge, add_node
from cred_atlas.errors import ConfigurationError, SourceIOError

logger = logging.getLogger(__name__)

SOURCE_ID = "initiatives"

NODE_PREFIX = ("cred_atlas", "initiatives")
EDGE_PREFIX = ("cred_atlas", "initiatives")

INITIATIVE_TYPE = NodeType("Initiative", NODE_PREFIX + ("initiative",), 0.0)

DEPENDS_ON_TYPE = EdgeType("Depends on", EDGE_PREFIX + ("DEPENDS_ON",), 1.0, 1 / 16)
REFERENCES_TYPE = EdgeType("References", EDGE_PREFIX + ("REFERENCES",), 1.0, 1 / 16)
CONTRIBUTES_TO_TYPE = EdgeType("Contributes to", EDGE_PREFIX + ("CONTRIBUTES_TO",), 0.5, 1.0)
CHAMPIONS_TYPE = EdgeType("Champions", EDGE_PREFIX + ("CHAMPIONS",), 1.0, 1 / 2)

declaration = PluginDeclaration(
    name="Initiatives",
    node_prefix=NODE_PREFIX,
    edge_prefix=EDGE_PREFIX,
    node_types=(INITIATIVE_TYPE,),
    edge_types=(DEPENDS_ON_TYPE, REFERENCES_TYPE, CONTRIBUTES_TO_TYPE, CHAMPIONS_TYPE),
)


@dataclass(frozen=True)
class InitiativesDirectory:
    local_path: str
    remote_url: str


@dataclass(frozen=True)
class InitiativeWeight:
    incomplete: float
    complete: float


@dataclass(frozen=True)
class Initiative:
    """
    One initiative file.

    Fields:
        id:            (remote_url, file_name); unique per directory.
        title:         Display title.
        timestamp_ms:  Creation time in epoch milliseconds.
        completed:     Whether the initiative is done.
        weight:        Node weight to use while incomplete / once complete.
        champions, dependencies, references, contributions:
                       URLs resolved through the reference detector.
    """

    id: tuple[str, str]
    title: str
    timestamp_ms: int
    completed: bool
    weight: InitiativeWeight | None = None
    champions: tuple[str, ...] = ()
    dependencies: tuple[str, ...] = ()
    references: tuple[str, ...] = ()
    contributions: tuple[str, ...] = ()


@dataclass(frozen=True)
class LoadedInitiativesDirectory:
    initiatives: tuple[Initiative, ...]
    reference_detector: ReferenceDetector = field(compare=False)


def initiative_address(initiative_id: tuple[str, str]) -> addr.NodeAddress:
    return INITIATIVE_TYPE.prefix + initiative_id


def initiative_file_url(remote_url: str, file_name: str) -> str:
    return f"{remote_url.rstrip('/')}/{file_name}"


# ── Loading ───────────────────────────────────────────────────────────────────

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _timestamp_ms(j: dict) -> int:
    """timestampMs as given, or timestampIso in ms; an ISO time without an offset is UTC."""
    if "timestampMs" in j:
        return int(j["timestampMs"])
    dt = datetime.fromisoformat(j["timestampIso"].replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return (dt - _EPOCH) // timedelta(milliseconds=1)


def _initiative_from_json(initiative_id: tuple[str, str], j: dict) -> Initiative:
    weight = j.get("weight")
    return Initiative(
        id=initiative_id,
        title=str(j["title"]),
        timestamp_ms=_timestamp_ms(j),
        completed=bool(j.get("completed", False)),
        weight=(
            InitiativeWeight(float(weight["incomplete"]), float(weight["complete"]))
            if weight is not None
            else None
        ),
        champions=tuple(j.get("champions", [])),
        dependencies=tuple(j.get("dependencies", [])),
        references=tuple(j.get("references", [])),
        contributions=tuple(j.get("contributions", [])),
    )


def read_initiatives_directory(directory: InitiativesDirectory) -> LoadedInitiativesDirectory:
    """
    Parse every *.json file in directory.local_path, in file-name order.

    Raises:
        ConfigurationError: local_path is not a directory.
        SourceIOError:      A file cannot be read or is not a valid initiative.
    """
    if not os.path.isdir(directory.local_path):
        raise ConfigurationError(
            f"Initiatives directory does not exist: {directory.local_path}"
        )

    initiatives: list[Initiative] = []
    url_to_address: dict[str, addr.NodeAddress] = {}
    for file_name in sorted(os.listdir(directory.local_path)):
        if not file_name.endswith(".json"):
            continue
        path = os.path.join(directory.local_path, file_name)
        try:
            with open(path, "r", encoding="utf-8") as fh:
                initiative = _initiative_from_json(
                    (directory.remote_url, file_name), json.load(fh)
                )
        except (OSError, ValueError, KeyError, TypeError) as exc:
            raise SourceIOError(SOURCE_ID, f"Invalid initiative file {path}: {exc}") from exc
        initiatives.append(initiative)
        url = initiative_file_url(directory.remote_url, file_name)
        url_to_address[url] = initiative_address(initiative.id)
        logger.debug("Loaded initiative %r from %s", initiative.title, path)

    logger.info(
        "Loaded %d initiatives from %s.", len(initiatives), directory.local_path
    )
    return LoadedInitiativesDirectory(
        initiatives=tuple(initiatives),
        reference_detector=MappedReferenceDetector(url_to_address),
    )


def load_directory(
    directory: InitiativesDirectory, reporter: TaskReporter
) -> LoadedInitiativesDirectory:
    reporter.start(SOURCE_ID)
    try:
        return read_initiatives_directory(directory)
    finally:
        reporter.finish(SOURCE_ID)


# ── Graph ─────────────────────────────────────────────────────────────────────

def _add_url_edges(
    G: nx.MultiDiGraph,
    initiative: Initiative,
    urls: tuple[str, ...],
    edge_type: EdgeType,
    refs: ReferenceDetector,
    outward: bool,
) -> int:
    """
    Add one edge per resolvable URL. outward=True points initiative -> target,
    otherwise target -> initiative. Returns the number of edges added.
    """
    node = initiative_address(initiative.id)
    added = 0
    for url in urls:
        target = refs.address_from_url(url)
        if target is None:
            logger.debug("Initiative %r: unresolved %s URL %s", initiative.title, edge_type.name, url)
            continue
        edge_address = edge_type.prefix + initiative.id + target
        src, dst = (node, target) if outward else (target, node)
        add_edge(G, edge_address, src, dst, initiative.timestamp_ms, allow_dangling=True)
        added += 1
    return added


def create_graph(initiatives: tuple[Initiative, ...], refs: ReferenceDetector) -> WeightedGraph:
    """Build the initiatives WeightedGraph, resolving every URL through refs."""
    G = nx.MultiDiGraph()
    for initiative in initiatives:
        add_node(G, initiative_address(initiative.id), initiative.title, initiative.timestamp_ms)

    edges = 0
    for initiative in initiatives:
        edges += _add_url_edges(G, initiative, initiative.dependencies, DEPENDS_ON_TYPE, refs, True)
        edges += _add_url_edges(G, initiative, initiative.references, REFERENCES_TYPE, refs, True)
        edges += _add_url_edges(G, initiative, initiative.contributions, CONTRIBUTES_TO_TYPE, refs, False)
        edges += _add_url_edges(G, initiative, initiative.champions, CHAMPIONS_TYPE, refs, False)

    weights = weights_for_declaration(declaration)
    for initiative in initiatives:
        if initiative.weight is not None:
            w = initiative.weight
            weights.node_weights[initiative_address(initiative.id)] = (
                w.complete if initiative.completed else w.incomplete
            )

    logger.info("Initiatives graph: %d initiatives, %d edges.", len(initiatives), edges)
    return WeightedGraph(graph=G, weights=weights)


class InitiativesLoader:
    def declaration(self) -> PluginDeclaration:
        return declaration

    def load_directory(
        self, directory: InitiativesDirectory, reporter: TaskReporter
    ) -> LoadedInitiativesDirectory:
        return load_directory(directory, reporter)

    def create_graph(
        self, initiatives: tuple[Initiative, ...], refs: ReferenceDetector
    ) -> WeightedGraph:
        return create_graph(initiatives, refs)
