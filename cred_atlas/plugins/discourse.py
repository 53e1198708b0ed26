"""
cred_atlas/plugins/discourse.py — Discussion-forum source: declaration and loader contract.

As with GitHub, fetching and graph construction are implemented outside this
package against the DiscourseLoader contract.

User nodes are scoped by server, since usernames are only unique per forum:
    ("cred_atlas", "discourse", "user", <server_url>, <username>)
"""

from typing import Protocol

from cred_atlas.analysis.plugin_declaration import EdgeType, NodeType, PluginDeclaration
from cred_atlas.backend.data_directory import CacheProvider
from cred_atlas.backend.task_reporter import TaskReporter
from cred_atlas.core.address import NodeAddress
from cred_atlas.core.project import DiscourseServer
from cred_atlas.core.references import ReferenceDetector
from cred_atlas.core.weighted_graph import WeightedGraph

NODE_PREFIX = ("cred_atlas", "discourse")
EDGE_PREFIX = ("cred_atlas", "discourse")

TOPIC_TYPE = NodeType("Topic", NODE_PREFIX + ("topic",), 2.0)
POST_TYPE = NodeType("Post", NODE_PREFIX + ("post",), 1.0)
USER_TYPE = NodeType("User", NODE_PREFIX + ("user",), 0.0, "A forum account")
LIKE_TYPE = NodeType("Like", NODE_PREFIX + ("like",), 4.0)

AUTHORS_TOPIC_TYPE = EdgeType("Authors topic", EDGE_PREFIX + ("authors", "topic"), 0.5, 1.0)
AUTHORS_POST_TYPE = EdgeType("Authors post", EDGE_PREFIX + ("authors", "post"), 0.5, 1.0)
TOPIC_CONTAINS_POST_TYPE = EdgeType(
    "Contains post", EDGE_PREFIX + ("topicContainsPost",), 0.25, 1.0
)
REPLY_TYPE = EdgeType("Post reply", EDGE_PREFIX + ("replyTo",), 1.0, 1 / 16)
REFERENCES_POST_TYPE = EdgeType(
    "References post", EDGE_PREFIX + ("references", "post"), 0.5, 1 / 16
)
LIKES_TYPE = EdgeType("Likes", EDGE_PREFIX + ("likes",), 1.0, 1 / 16)

declaration = PluginDeclaration(
    name="Discourse",
    node_prefix=NODE_PREFIX,
    edge_prefix=EDGE_PREFIX,
    node_types=(TOPIC_TYPE, POST_TYPE, USER_TYPE, LIKE_TYPE),
    edge_types=(
        AUTHORS_TOPIC_TYPE,
        AUTHORS_POST_TYPE,
        TOPIC_CONTAINS_POST_TYPE,
        REPLY_TYPE,
        REFERENCES_POST_TYPE,
        LIKES_TYPE,
    ),
    user_types=(USER_TYPE,),
)


def user_address(server_url: str, username: str) -> NodeAddress:
    return USER_TYPE.prefix + (server_url, username)


class DiscourseLoader(Protocol):
    def declaration(self) -> PluginDeclaration:
        ...

    def update_mirror(
        self, server: DiscourseServer, cache: CacheProvider, reporter: TaskReporter
    ) -> None:
        ...

    def create_graph(self, server: DiscourseServer, cache: CacheProvider) -> WeightedGraph:
        ...

    def reference_detector(
        self, server: DiscourseServer, cache: CacheProvider
    ) -> ReferenceDetector:
        ...
