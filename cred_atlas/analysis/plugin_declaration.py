"""
cred_atlas/analysis/plugin_declaration.py — What each source contributes.

A PluginDeclaration is static metadata: the address prefixes a source puts
its nodes and edges under, the node and edge types it produces with their
default weights, and which node types are users (the scoring nodes). It is
known before any data is fetched.
"""

from dataclasses import dataclass
from typing import Sequence

from cred_atlas.core.address import EdgeAddress, NodeAddress
from cred_atlas.core.compat import CompatInfo, from_compat, to_compat
from cred_atlas.core.weighted_graph import EdgeWeight, Weights

COMPAT_INFO = CompatInfo(type="cred_atlas/pluginDeclarations", version="0.1.0")


@dataclass(frozen=True)
class NodeType:
    name: str
    prefix: NodeAddress
    default_weight: float
    description: str = ""


@dataclass(frozen=True)
class EdgeType:
    name: str
    prefix: EdgeAddress
    forward_weight: float
    backward_weight: float
    description: str = ""


@dataclass(frozen=True)
class PluginDeclaration:
    """
    Fields:
        name:        Display name of the source.
        node_prefix: Prefix shared by every node the source creates.
        edge_prefix: Prefix shared by every edge the source creates.
        node_types:  Node types with default weights.
        edge_types:  Edge types with default forward/backward weights.
        user_types:  Node types whose nodes are scoring (cred recipients).
    """

    name: str
    node_prefix: NodeAddress
    edge_prefix: EdgeAddress
    node_types: tuple[NodeType, ...]
    edge_types: tuple[EdgeType, ...]
    user_types: tuple[NodeType, ...] = ()


def weights_for_declaration(declaration: PluginDeclaration) -> Weights:
    """Default Weights for a declaration: one entry per node and edge type."""
    return Weights(
        node_weights={t.prefix: t.default_weight for t in declaration.node_types},
        edge_weights={
            t.prefix: EdgeWeight(t.forward_weight, t.backward_weight)
            for t in declaration.edge_types
        },
    )


def scoring_prefixes(declarations: Sequence[PluginDeclaration]) -> list[NodeAddress]:
    """Prefixes of every user type across declarations, in declaration order."""
    return [t.prefix for d in declarations for t in d.user_types]


# ── JSON ──────────────────────────────────────────────────────────────────────

def _node_type_to_json(t: NodeType) -> dict:
    return {
        "name": t.name,
        "prefix": list(t.prefix),
        "defaultWeight": t.default_weight,
        "description": t.description,
    }


def _node_type_from_json(j: dict) -> NodeType:
    return NodeType(j["name"], tuple(j["prefix"]), j["defaultWeight"], j.get("description", ""))


def to_json(declarations: Sequence[PluginDeclaration]) -> list:
    payload = [
        {
            "name": d.name,
            "nodePrefix": list(d.node_prefix),
            "edgePrefix": list(d.edge_prefix),
            "nodeTypes": [_node_type_to_json(t) for t in d.node_types],
            "edgeTypes": [
                {
                    "name": t.name,
                    "prefix": list(t.prefix),
                    "defaultWeight": {
                        "forwards": t.forward_weight,
                        "backwards": t.backward_weight,
                    },
                    "description": t.description,
                }
                for t in d.edge_types
            ],
            "userTypes": [_node_type_to_json(t) for t in d.user_types],
        }
        for d in declarations
    ]
    return to_compat(COMPAT_INFO, payload)


def from_json(document: list) -> list[PluginDeclaration]:
    payload = from_compat(COMPAT_INFO, document)
    return [
        PluginDeclaration(
            name=d["name"],
            node_prefix=tuple(d["nodePrefix"]),
            edge_prefix=tuple(d["edgePrefix"]),
            node_types=tuple(_node_type_from_json(t) for t in d["nodeTypes"]),
            edge_types=tuple(
                EdgeType(
                    t["name"],
                    tuple(t["prefix"]),
                    t["defaultWeight"]["forwards"],
                    t["defaultWeight"]["backwards"],
                    t.get("description", ""),
                )
                for t in d["edgeTypes"]
            ),
            user_types=tuple(_node_type_from_json(t) for t in d["userTypes"]),
        )
        for d in payload
    ]
