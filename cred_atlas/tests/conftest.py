"""
cred_atlas/tests/conftest.py — Shared pytest fixtures for the Cred Atlas test suite.

The fake GitHub and Discourse loaders stand in for the external adapters:
they build small deterministic graphs, record every call, and can be told to
fail so that the joint-failure behaviour of the concurrent stages is testable.

Fixtures:
    github_loader      — FakeGithubLoader (fresh per test).
    discourse_loader   — FakeDiscourseLoader (fresh per test).
    loaders            — PluginLoaders over the two fakes plus the real
                         identity and initiatives loaders.
    reporter           — SilentTaskReporter.
    data_directory     — DataDirectory rooted in tmp_path.
    initiatives_dir    — A local initiatives checkout with two initiatives.
    full_project       — Project using every source, with one identity.
    mirror_env         — MirrorEnv with a token, initiatives_dir, reporter, cache.
"""

import json
import threading

import networkx as nx
import pytest

from cred_atlas.analysis.plugin_declaration import weights_for_declaration
from cred_atlas.backend.data_directory import DataDirectory
from cred_atlas.backend.plugin_loaders import MirrorEnv, PluginLoaders
from cred_atlas.backend.task_reporter import SilentTaskReporter
from cred_atlas.core.project import (
    DiscourseServer,
    Identity,
    InitiativesOptions,
    Project,
    RepoId,
)
from cred_atlas.core.references import MappedReferenceDetector
from cred_atlas.core.weighted_graph import WeightedGraph, add_edge, add_node
from cred_atlas.plugins import discourse, github
from cred_atlas.plugins.identity import IdentityLoader
from cred_atlas.plugins.initiatives import InitiativesLoader

GITHUB_TOKEN = "ghp_test_token"
FORUM_URL = "https://forum.example.org"
INITIATIVES_URL = "https://initiatives.example.org"

REPO = github.REPO_TYPE.prefix + ("org", "repo")
ALICE_GH = github.user_address("alice-gh")
BOB_GH = github.user_address("bob")
TOPIC = discourse.TOPIC_TYPE.prefix + (FORUM_URL, "1")
ALICE_FORUM = discourse.user_address(FORUM_URL, "alice")


# ── Fake external loaders ─────────────────────────────────────────────────────

class _RecordingLoader:
    """Common call recording and failure injection for the fakes."""

    source_id = ""

    def __init__(self) -> None:
        self.calls: list[str] = []
        self.fail_with: dict[str, Exception] = {}
        self.references: dict[str, tuple[str, ...]] = {}
        self._lock = threading.Lock()

    def _record(self, call: str) -> None:
        with self._lock:
            self.calls.append(call)
        if call in self.fail_with:
            raise self.fail_with[call]


class FakeGithubLoader(_RecordingLoader):
    source_id = "github"

    def __init__(self) -> None:
        super().__init__()
        self.references = {
            "https://github.com/alice-gh": ALICE_GH,
            "https://github.com/org/repo": REPO,
        }

    def declaration(self):
        return github.declaration

    def update_mirror(self, repo_ids, token, cache, reporter):
        reporter.start(self.source_id)
        try:
            self._record("update_mirror")
            cache.database(self.source_id).close()
        finally:
            reporter.finish(self.source_id)

    def create_graph(self, repo_ids, token, cache):
        self._record("create_graph")
        G = nx.MultiDiGraph()
        add_node(G, REPO, "org/repo", 1_000)
        add_node(G, ALICE_GH, "@alice-gh", 2_000)
        add_node(G, BOB_GH, "@bob", 3_000)
        add_edge(G, github.AUTHORS_TYPE.prefix + ("alice-gh", "org", "repo"), ALICE_GH, REPO, 2_000)
        add_edge(G, github.AUTHORS_TYPE.prefix + ("bob", "org", "repo"), BOB_GH, REPO, 3_000)
        return WeightedGraph(graph=G, weights=weights_for_declaration(github.declaration))

    def reference_detector(self, repo_ids, token, cache):
        self._record("reference_detector")
        return MappedReferenceDetector(self.references)


class FakeDiscourseLoader(_RecordingLoader):
    source_id = "discourse"

    def __init__(self) -> None:
        super().__init__()
        self.references = {f"{FORUM_URL}/t/1": TOPIC}

    def declaration(self):
        return discourse.declaration

    def update_mirror(self, server, cache, reporter):
        reporter.start(self.source_id)
        try:
            self._record("update_mirror")
            cache.database(self.source_id).close()
        finally:
            reporter.finish(self.source_id)

    def create_graph(self, server, cache):
        self._record("create_graph")
        G = nx.MultiDiGraph()
        add_node(G, TOPIC, "Welcome", 1_500)
        add_node(G, ALICE_FORUM, "@alice", 1_200)
        add_edge(
            G,
            discourse.AUTHORS_TOPIC_TYPE.prefix + (FORUM_URL, "alice", "1"),
            ALICE_FORUM,
            TOPIC,
            1_500,
        )
        return WeightedGraph(graph=G, weights=weights_for_declaration(discourse.declaration))

    def reference_detector(self, server, cache):
        self._record("reference_detector")
        return MappedReferenceDetector(self.references)


# ── Fixtures ──────────────────────────────────────────────────────────────────

@pytest.fixture
def github_loader():
    return FakeGithubLoader()


@pytest.fixture
def discourse_loader():
    return FakeDiscourseLoader()


@pytest.fixture
def loaders(github_loader, discourse_loader):
    return PluginLoaders(
        github=github_loader,
        discourse=discourse_loader,
        identity=IdentityLoader(),
        initiatives=InitiativesLoader(),
    )


@pytest.fixture
def reporter():
    return SilentTaskReporter()


@pytest.fixture
def data_directory(tmp_path):
    return DataDirectory(str(tmp_path / "data"))


def write_initiative(directory, file_name: str, document: dict) -> None:
    with open(directory / file_name, "w", encoding="utf-8") as fh:
        json.dump(document, fh)


@pytest.fixture
def initiatives_dir(tmp_path):
    """
    Two initiatives:
        init-1.json  incomplete, weighted, points at GitHub, the forum,
                     init-2 and one URL nothing resolves.
        init-2.json  completed, unweighted, no links.
    """
    directory = tmp_path / "initiatives"
    directory.mkdir()
    write_initiative(
        directory,
        "init-1.json",
        {
            "title": "Write the onboarding guide",
            "timestampIso": "2020-01-08T22:01:57.711Z",
            "weight": {"incomplete": 360, "complete": 420},
            "completed": False,
            "champions": ["https://github.com/alice-gh"],
            "dependencies": [f"{INITIATIVES_URL}/init-2.json"],
            "references": [f"{FORUM_URL}/t/1"],
            "contributions": ["https://github.com/org/repo", "https://unknown.example.org/x"],
        },
    )
    write_initiative(
        directory,
        "init-2.json",
        {
            "title": "Cut the first release",
            "timestampMs": 1578528000000,
            "completed": True,
            "champions": [],
            "dependencies": [],
            "references": [],
            "contributions": [],
        },
    )
    (directory / "README.md").write_text("not an initiative\n", encoding="utf-8")
    return directory


@pytest.fixture
def full_project():
    return Project(
        id="example-project",
        repo_ids=(RepoId("org", "repo"),),
        discourse_server=DiscourseServer(FORUM_URL),
        identities=(Identity("alice", ("github/alice-gh", "discourse/alice")),),
        initiatives=InitiativesOptions(INITIATIVES_URL),
    )


@pytest.fixture
def mirror_env(initiatives_dir, reporter, data_directory):
    return MirrorEnv(
        github_token=GITHUB_TOKEN,
        initiatives_directory=str(initiatives_dir),
        reporter=reporter,
        cache=data_directory,
    )
