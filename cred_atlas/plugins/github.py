"""
cred_atlas/plugins/github.py — Code-hosting source: declaration and loader contract.

The mirror and graph implementations talk to the GitHub API and live outside
this package; anything satisfying GithubLoader can be plugged into
cred_atlas.backend.plugin_loaders.PluginLoaders.

Node address layout:  ("cred_atlas", "github", <TYPE>, ...)
User nodes:           ("cred_atlas", "github", "USERLIKE", "USER", <login>)
"""

from typing import Protocol, Sequence

from cred_atlas.analysis.plugin_declaration import EdgeType, NodeType, PluginDeclaration
from cred_atlas.backend.data_directory import CacheProvider
from cred_atlas.backend.task_reporter import TaskReporter
from cred_atlas.core.address import NodeAddress
from cred_atlas.core.project import RepoId
from cred_atlas.core.references import ReferenceDetector
from cred_atlas.core.weighted_graph import WeightedGraph

NODE_PREFIX = ("cred_atlas", "github")
EDGE_PREFIX = ("cred_atlas", "github")

REPO_TYPE = NodeType("Repository", NODE_PREFIX + ("REPO",), 4.0)
ISSUE_TYPE = NodeType("Issue", NODE_PREFIX + ("ISSUE",), 2.0)
PULL_TYPE = NodeType("Pull request", NODE_PREFIX + ("PULL",), 4.0)
REVIEW_TYPE = NodeType("Pull request review", NODE_PREFIX + ("REVIEW",), 1.0)
COMMENT_TYPE = NodeType("Comment", NODE_PREFIX + ("COMMENT",), 1.0)
COMMIT_TYPE = NodeType("Commit", NODE_PREFIX + ("COMMIT",), 1.0)
USER_TYPE = NodeType(
    "User", NODE_PREFIX + ("USERLIKE", "USER"), 0.0, "A GitHub user account"
)
BOT_TYPE = NodeType("Bot", NODE_PREFIX + ("USERLIKE", "BOT"), 0.0)

AUTHORS_TYPE = EdgeType("Authors", EDGE_PREFIX + ("AUTHORS",), 0.5, 1.0)
HAS_PARENT_TYPE = EdgeType("Has parent", EDGE_PREFIX + ("HAS_PARENT",), 1.0, 0.25)
MERGED_AS_TYPE = EdgeType("Merged as", EDGE_PREFIX + ("MERGED_AS",), 0.5, 1.0)
REFERENCES_TYPE = EdgeType("References", EDGE_PREFIX + ("REFERENCES",), 1.0, 1 / 16)
REACTS_TYPE = EdgeType("Reacts", EDGE_PREFIX + ("REACTS",), 1.0, 1 / 32)

declaration = PluginDeclaration(
    name="GitHub",
    node_prefix=NODE_PREFIX,
    edge_prefix=EDGE_PREFIX,
    node_types=(
        REPO_TYPE,
        ISSUE_TYPE,
        PULL_TYPE,
        REVIEW_TYPE,
        COMMENT_TYPE,
        COMMIT_TYPE,
        USER_TYPE,
        BOT_TYPE,
    ),
    edge_types=(AUTHORS_TYPE, HAS_PARENT_TYPE, MERGED_AS_TYPE, REFERENCES_TYPE, REACTS_TYPE),
    user_types=(USER_TYPE,),
)


def user_address(login: str) -> NodeAddress:
    return USER_TYPE.prefix + (login,)


class GithubLoader(Protocol):
    def declaration(self) -> PluginDeclaration:
        ...

    def update_mirror(
        self,
        repo_ids: Sequence[RepoId],
        token: str,
        cache: CacheProvider,
        reporter: TaskReporter,
    ) -> None:
        ...

    def create_graph(
        self, repo_ids: Sequence[RepoId], token: str, cache: CacheProvider
    ) -> WeightedGraph:
        ...

    def reference_detector(
        self, repo_ids: Sequence[RepoId], token: str, cache: CacheProvider
    ) -> ReferenceDetector:
        ...
