"""
cred_atlas/plugins/identity.py — Manual identity merges.

A project can declare that several accounts belong to one person:

    Identity(username="alice", aliases=("github/alice-gh", "discourse/alice"))

Contraction replaces every alias node present in the merged graph with one
identity node, ("cred_atlas", "identity", "IDENTITY", <username>). Edges that
touched an alias are re-pointed to the identity node and keep their edge
addresses, so no edge is lost. Identity nodes are the scoring (user) type of
this source.

Alias syntax is "<source>/<name>", where source is "github" or "discourse".
Forum usernames are per-server, so resolving a discourse alias needs the
project's forum server URL.
"""

import logging
from dataclasses import dataclass

import networkx as nx

from cred_atlas.analysis.plugin_declaration import (
    NodeType,
    PluginDeclaration,
    weights_for_declaration,
)
from cred_atlas.core import address as addr
from cred_atlas.core.project import Identity
from cred_atlas.core.weighted_graph import Weights, WeightedGraph, merge_weights
from cred_atlas.errors import ConfigurationError
from cred_atlas.plugins import discourse, github

logger = logging.getLogger(__name__)

NODE_PREFIX = ("cred_atlas", "identity")
EDGE_PREFIX = ("cred_atlas", "identity")

IDENTITY_TYPE = NodeType(
    "Identity", NODE_PREFIX + ("IDENTITY",), 1.0, "A person merged across accounts"
)

declaration = PluginDeclaration(
    name="Identity",
    node_prefix=NODE_PREFIX,
    edge_prefix=EDGE_PREFIX,
    node_types=(IDENTITY_TYPE,),
    edge_types=(),
    user_types=(IDENTITY_TYPE,),
)


@dataclass(frozen=True)
class IdentityMerges:
    identities: tuple[Identity, ...]
    discourse_server_url: str | None


def identity_address(username: str) -> addr.NodeAddress:
    return IDENTITY_TYPE.prefix + (username,)


def resolve_alias(alias: str, discourse_server_url: str | None) -> addr.NodeAddress:
    """
    Map an alias string to the node address of the account it names.

    Raises:
        ConfigurationError: Malformed alias, unknown source, or a discourse
                            alias with no forum server configured.
    """
    source, sep, name = alias.partition("/")
    if not sep or not name:
        raise ConfigurationError(f"Unparseable identity alias: {alias!r}")
    if source == "github":
        return github.user_address(name)
    if source == "discourse":
        if discourse_server_url is None:
            raise ConfigurationError(
                f"Alias {alias!r} refers to Discourse, but no Discourse server is configured"
            )
        return discourse.user_address(discourse_server_url, name)
    raise ConfigurationError(f"Unknown source {source!r} in identity alias {alias!r}")


def _alias_mapping(merges: IdentityMerges) -> dict[addr.NodeAddress, addr.NodeAddress]:
    mapping: dict[addr.NodeAddress, addr.NodeAddress] = {}
    usernames: set[str] = set()
    for identity in merges.identities:
        if identity.username in usernames:
            raise ConfigurationError(f"Duplicate identity username {identity.username!r}")
        usernames.add(identity.username)
        target = identity_address(identity.username)
        for alias in identity.aliases:
            source_address = resolve_alias(alias, merges.discourse_server_url)
            previous = mapping.get(source_address)
            if previous is not None and previous != target:
                raise ConfigurationError(
                    f"Alias {alias!r} is claimed by more than one identity"
                )
            mapping[source_address] = target
    return mapping


def contract_identities(wg: WeightedGraph, merges: IdentityMerges) -> WeightedGraph:
    """
    Return a new WeightedGraph with every identity's aliases contracted.

    Node attributes of the identity node: description '@<username>', and the
    earliest timestamp_ms among the contracted aliases. Weights: this source's
    default weights are added; an exact-address node weight set on an alias
    moves to the identity node, summed across aliases.

    The input graph is not modified.

    Raises:
        ConfigurationError: See resolve_alias(); also a duplicate username or
                            an alias claimed by two identities.
        GraphMergeError:    The input already carries identity weights.
    """
    G = wg.graph
    mapping = _alias_mapping(merges)
    present = {source: target for source, target in mapping.items() if source in G}

    earliest: dict[addr.NodeAddress, int] = {}
    for source, target in present.items():
        ts = G.nodes[source].get("timestamp_ms")
        if ts is not None and (target not in earliest or ts < earliest[target]):
            earliest[target] = ts

    # relabel_nodes merges nodes mapped to the same target and carries every
    # edge (with its key) across to the relabelled endpoints.
    H = nx.relabel_nodes(G, present, copy=True)
    for identity in merges.identities:
        target = identity_address(identity.username)
        H.add_node(
            target,
            description=f"@{identity.username}",
            timestamp_ms=earliest.get(target),
            dangling=False,
        )

    weights = merge_weights([wg.weights, weights_for_declaration(declaration)])
    _move_alias_weights(weights, present)

    logger.info(
        "Contracted %d identities (%d alias nodes present): %d -> %d nodes.",
        len(merges.identities),
        len(present),
        G.number_of_nodes(),
        H.number_of_nodes(),
    )
    return WeightedGraph(graph=H, weights=weights)


def _move_alias_weights(
    weights: Weights, present: dict[addr.NodeAddress, addr.NodeAddress]
) -> None:
    for source, target in present.items():
        if source in weights.node_weights:
            moved = weights.node_weights.pop(source)
            weights.node_weights[target] = weights.node_weights.get(target, 0.0) + moved


class IdentityLoader:
    """Loader for the identity source; it has no mirror and no graph of its own."""

    def declaration(self) -> PluginDeclaration:
        return declaration

    def contract_identities(self, wg: WeightedGraph, merges: IdentityMerges) -> WeightedGraph:
        return contract_identities(wg, merges)
