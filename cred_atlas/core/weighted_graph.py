"""
cred_atlas/core/weighted_graph.py — Address graphs with prefix-keyed weights.

A WeightedGraph pairs a NetworkX MultiDiGraph with a Weights table:

    graph   : nodes keyed by NodeAddress  (attrs: description, timestamp_ms,
                                           dangling)
              edges keyed by EdgeAddress  (attrs: timestamp_ms)
    weights : node_weights {NodeAddress prefix: float}
              edge_weights {EdgeAddress prefix: EdgeWeight(forwards, backwards)}

Each source addresses its nodes and edges under its own namespace, so the
graphs the sources produce are disjoint. merge() is a disjoint union and
treats any shared address as an adapter bug.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable

import networkx as nx

from cred_atlas.core import address as addr
from cred_atlas.core.compat import CompatInfo, from_compat, to_compat
from cred_atlas.errors import GraphMergeError

logger = logging.getLogger(__name__)

COMPAT_INFO = CompatInfo(type="cred_atlas/weightedGraph", version="0.1.0")


@dataclass(frozen=True)
class EdgeWeight:
    forwards: float
    backwards: float


@dataclass
class Weights:
    """Importance weights keyed by address prefix."""

    node_weights: dict[tuple[str, ...], float] = field(default_factory=dict)
    edge_weights: dict[tuple[str, ...], EdgeWeight] = field(default_factory=dict)


@dataclass(frozen=True)
class WeightedGraph:
    graph: nx.MultiDiGraph
    weights: Weights


# ── Graph construction helpers ────────────────────────────────────────────────

def empty_graph() -> WeightedGraph:
    return WeightedGraph(graph=nx.MultiDiGraph(), weights=Weights())


def add_node(
    G: nx.MultiDiGraph,
    address: addr.NodeAddress,
    description: str = "",
    timestamp_ms: int | None = None,
) -> None:
    G.add_node(address, description=description, timestamp_ms=timestamp_ms, dangling=False)


def add_edge(
    G: nx.MultiDiGraph,
    address: addr.EdgeAddress,
    src: addr.NodeAddress,
    dst: addr.NodeAddress,
    timestamp_ms: int | None = None,
    allow_dangling: bool = False,
) -> None:
    """
    Add an edge keyed by its address.

    Endpoints must already be nodes of G unless allow_dangling is set, in
    which case a missing endpoint is recorded as a dangling placeholder. A
    source uses dangling endpoints to point at nodes owned by another source;
    merge() resolves them against the owner's real node.
    """
    for endpoint in (src, dst):
        if endpoint in G:
            continue
        if not allow_dangling:
            raise ValueError(
                f"Edge {addr.to_string(address)} has dangling endpoint "
                f"{addr.to_string(endpoint)}"
            )
        G.add_node(endpoint, description="", timestamp_ms=None, dangling=True)
    G.add_edge(src, dst, key=address, timestamp_ms=timestamp_ms)


def is_dangling(G: nx.MultiDiGraph, node: addr.NodeAddress) -> bool:
    return bool(G.nodes[node].get("dangling", False))


def real_nodes(G: nx.MultiDiGraph) -> list[addr.NodeAddress]:
    """Nodes of G excluding dangling placeholders."""
    return [n for n, d in G.nodes(data=True) if not d.get("dangling", False)]


def node_order(wg: WeightedGraph) -> list[addr.NodeAddress]:
    """Canonical node ordering handed to the solver: sorted real nodes."""
    return sorted(real_nodes(wg.graph))


def edge_addresses(G: nx.MultiDiGraph) -> list[addr.EdgeAddress]:
    return [key for _, _, key in G.edges(keys=True)]


# ── Merge ─────────────────────────────────────────────────────────────────────

def merge_weights(all_weights: Iterable[Weights]) -> Weights:
    """
    Union of weight tables.

    Raises:
        GraphMergeError: Two tables define a weight for the same prefix.
    """
    merged = Weights()
    for weights in all_weights:
        for prefix, w in weights.node_weights.items():
            if prefix in merged.node_weights:
                raise GraphMergeError(
                    f"Conflicting node weight for prefix {addr.to_string(prefix)}"
                )
            merged.node_weights[prefix] = w
        for prefix, ew in weights.edge_weights.items():
            if prefix in merged.edge_weights:
                raise GraphMergeError(
                    f"Conflicting edge weight for prefix {addr.to_string(prefix)}"
                )
            merged.edge_weights[prefix] = ew
    return merged


def merge(weighted_graphs: Iterable[WeightedGraph]) -> WeightedGraph:
    """
    Namespace-disjoint union of weighted graphs.

    Merging zero graphs yields an empty graph. The inputs are not modified.
    A dangling endpoint in one graph is replaced by the real node of the same
    address from another graph; it is not a collision.

    Raises:
        GraphMergeError: A real node address, an edge address, or a weight
                         prefix appears in more than one input.
    """
    weighted_graphs = list(weighted_graphs)
    G = nx.MultiDiGraph()
    edge_keys: set[addr.EdgeAddress] = set()

    for wg in weighted_graphs:
        for node, data in wg.graph.nodes(data=True):
            incoming_dangling = data.get("dangling", False)
            if node in G:
                if incoming_dangling:
                    continue
                if not is_dangling(G, node):
                    raise GraphMergeError(
                        f"Node {addr.to_string(node)} is present in more than one graph"
                    )
            G.add_node(node, **data)
        for src, dst, key, data in wg.graph.edges(keys=True, data=True):
            if key in edge_keys:
                raise GraphMergeError(
                    f"Edge {addr.to_string(key)} is present in more than one graph"
                )
            edge_keys.add(key)
            G.add_edge(src, dst, key=key, **data)

    weights = merge_weights(wg.weights for wg in weighted_graphs)
    logger.info(
        "Merged %d graphs: %d nodes, %d edges.",
        len(weighted_graphs),
        G.number_of_nodes(),
        G.number_of_edges(),
    )
    return WeightedGraph(graph=G, weights=weights)


# ── JSON ──────────────────────────────────────────────────────────────────────

def weights_to_json(weights: Weights) -> dict:
    return {
        "nodeWeights": [[list(p), w] for p, w in sorted(weights.node_weights.items())],
        "edgeWeights": [
            [list(p), {"forwards": ew.forwards, "backwards": ew.backwards}]
            for p, ew in sorted(weights.edge_weights.items())
        ],
    }


def weights_from_json(j: dict) -> Weights:
    return Weights(
        node_weights={tuple(p): float(w) for p, w in j.get("nodeWeights", [])},
        edge_weights={
            tuple(p): EdgeWeight(float(ew["forwards"]), float(ew["backwards"]))
            for p, ew in j.get("edgeWeights", [])
        },
    )


def to_json(wg: WeightedGraph) -> list:
    """Serialise; dangling placeholders are implied by edge endpoints."""
    G = wg.graph
    nodes = [
        {
            "address": list(node),
            "description": G.nodes[node].get("description", ""),
            "timestampMs": G.nodes[node].get("timestamp_ms"),
        }
        for node in sorted(real_nodes(G))
    ]
    edges = [
        {
            "address": list(key),
            "src": list(src),
            "dst": list(dst),
            "timestampMs": data.get("timestamp_ms"),
        }
        for src, dst, key, data in sorted(
            G.edges(keys=True, data=True), key=lambda e: e[2]
        )
    ]
    payload = {"nodes": nodes, "edges": edges, "weights": weights_to_json(wg.weights)}
    return to_compat(COMPAT_INFO, payload)


def from_json(document: list) -> WeightedGraph:
    payload = from_compat(COMPAT_INFO, document)
    G = nx.MultiDiGraph()
    for n in payload["nodes"]:
        add_node(G, tuple(n["address"]), n.get("description", ""), n.get("timestampMs"))
    for e in payload["edges"]:
        add_edge(
            G,
            tuple(e["address"]),
            tuple(e["src"]),
            tuple(e["dst"]),
            e.get("timestampMs"),
            allow_dangling=True,
        )
    return WeightedGraph(graph=G, weights=weights_from_json(payload["weights"]))
