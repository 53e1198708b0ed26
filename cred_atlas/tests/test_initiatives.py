"""
cred_atlas/tests/test_initiatives.py — Tests for initiatives directory loading and graph construction.

Tests verify:
- Only *.json files are read, in file-name order, with ISO and ms timestamps.
- The loaded directory's detector maps each file's remote URL to its node.
- A missing directory is a ConfigurationError; a bad file is a SourceIOError.
- The reporter sees start/finish for "initiatives", also on failure.
- Graph edges follow resolved URLs; unresolved URLs are skipped.
- Per-initiative weights follow the completed flag.
"""

import pytest

from cred_atlas.backend.task_reporter import SilentTaskReporter
from cred_atlas.core.references import CascadingReferenceDetector, MappedReferenceDetector
from cred_atlas.core.weighted_graph import edge_addresses, is_dangling, node_order
from cred_atlas.errors import ConfigurationError, SourceIOError
from cred_atlas.plugins import github
from cred_atlas.plugins.initiatives import (
    CHAMPIONS_TYPE,
    CONTRIBUTES_TO_TYPE,
    DEPENDS_ON_TYPE,
    REFERENCES_TYPE,
    InitiativesDirectory,
    InitiativesLoader,
    create_graph,
    initiative_address,
    load_directory,
)

REMOTE = "https://initiatives.example.org"
INIT_1 = initiative_address((REMOTE, "init-1.json"))
INIT_2 = initiative_address((REMOTE, "init-2.json"))
ALICE_GH = github.user_address("alice-gh")
REPO = github.REPO_TYPE.prefix + ("org", "repo")
TOPIC = ("cred_atlas", "discourse", "topic", "https://forum.example.org", "1")


def _load(initiatives_dir, reporter=None):
    return load_directory(
        InitiativesDirectory(str(initiatives_dir), REMOTE), reporter or SilentTaskReporter()
    )


def _external_refs():
    return MappedReferenceDetector(
        {
            "https://github.com/alice-gh": ALICE_GH,
            "https://github.com/org/repo": REPO,
            "https://forum.example.org/t/1": TOPIC,
        }
    )


# ── Loading ───────────────────────────────────────────────────────────────────

def test_loads_json_files_in_order(initiatives_dir):
    loaded = _load(initiatives_dir)
    assert [i.id for i in loaded.initiatives] == [
        (REMOTE, "init-1.json"),
        (REMOTE, "init-2.json"),
    ]


def test_initiative_fields(initiatives_dir):
    first, second = _load(initiatives_dir).initiatives
    assert first.title == "Write the onboarding guide"
    assert first.timestamp_ms == 1578520917711
    assert first.completed is False
    assert first.weight.incomplete == 360.0
    assert first.champions == ("https://github.com/alice-gh",)
    assert second.timestamp_ms == 1578528000000
    assert second.completed is True
    assert second.weight is None


@pytest.mark.parametrize(
    "timestamp_iso, expected_ms",
    [
        ("2020-01-08T22:01:57.711", 1578520917711),
        ("2020-01-08T23:01:57.711+01:00", 1578520917711),
        ("1969-12-31T23:59:59.500Z", -500),
    ],
)
def test_iso_timestamps(tmp_path, timestamp_iso, expected_ms):
    """No offset means UTC; times before the epoch keep their milliseconds."""
    (tmp_path / "t.json").write_text(
        f'{{"title": "t", "timestampIso": "{timestamp_iso}"}}', encoding="utf-8"
    )
    (initiative,) = _load(tmp_path).initiatives
    assert initiative.timestamp_ms == expected_ms


def test_detector_maps_remote_urls(initiatives_dir):
    detector = _load(initiatives_dir).reference_detector
    assert detector.address_from_url(f"{REMOTE}/init-2.json") == INIT_2
    assert detector.address_from_url(f"{REMOTE}/README.md") is None


def test_reporter_brackets_loading(initiatives_dir):
    reporter = SilentTaskReporter()
    _load(initiatives_dir, reporter)
    assert reporter.events == [("start", "initiatives"), ("finish", "initiatives")]


def test_missing_directory_is_configuration_error(tmp_path):
    reporter = SilentTaskReporter()
    with pytest.raises(ConfigurationError):
        _load(tmp_path / "nope", reporter)
    assert reporter.events[-1] == ("finish", "initiatives")


@pytest.mark.parametrize(
    "content",
    ["{not json", '{"timestampMs": 1}', '{"title": "t", "timestampIso": "yesterday"}'],
)
def test_invalid_file_is_source_io_error(initiatives_dir, content):
    (initiatives_dir / "broken.json").write_text(content, encoding="utf-8")
    with pytest.raises(SourceIOError) as excinfo:
        _load(initiatives_dir)
    assert excinfo.value.source == "initiatives"
    assert excinfo.value.__cause__ is not None


# ── Graph ─────────────────────────────────────────────────────────────────────

def test_graph_nodes(initiatives_dir):
    loaded = _load(initiatives_dir)
    refs = CascadingReferenceDetector([_external_refs(), loaded.reference_detector])
    wg = create_graph(loaded.initiatives, refs)
    assert node_order(wg) == [INIT_1, INIT_2]
    assert wg.graph.nodes[INIT_1]["description"] == "Write the onboarding guide"


def test_graph_edges_follow_resolved_urls(initiatives_dir):
    loaded = _load(initiatives_dir)
    refs = CascadingReferenceDetector([_external_refs(), loaded.reference_detector])
    G = create_graph(loaded.initiatives, refs).graph
    init_id = (REMOTE, "init-1.json")

    assert G.has_edge(ALICE_GH, INIT_1, key=CHAMPIONS_TYPE.prefix + init_id + ALICE_GH)
    assert G.has_edge(INIT_1, INIT_2, key=DEPENDS_ON_TYPE.prefix + init_id + INIT_2)
    assert G.has_edge(INIT_1, TOPIC, key=REFERENCES_TYPE.prefix + init_id + TOPIC)
    assert G.has_edge(REPO, INIT_1, key=CONTRIBUTES_TO_TYPE.prefix + init_id + REPO)
    assert len(edge_addresses(G)) == 4


def test_foreign_endpoints_are_dangling(initiatives_dir):
    loaded = _load(initiatives_dir)
    refs = CascadingReferenceDetector([_external_refs(), loaded.reference_detector])
    G = create_graph(loaded.initiatives, refs).graph
    assert is_dangling(G, ALICE_GH)
    assert not is_dangling(G, INIT_2)


def test_unresolved_urls_skipped(initiatives_dir):
    """With only the initiatives' own detector, only the dependency edge survives."""
    loaded = _load(initiatives_dir)
    G = create_graph(loaded.initiatives, loaded.reference_detector).graph
    assert [key[: len(DEPENDS_ON_TYPE.prefix)] for key in edge_addresses(G)] == [
        DEPENDS_ON_TYPE.prefix
    ]


def test_initiative_weights(initiatives_dir):
    loaded = _load(initiatives_dir)
    weights = create_graph(loaded.initiatives, loaded.reference_detector).weights
    assert weights.node_weights[INIT_1] == 360.0
    assert INIT_2 not in weights.node_weights


def test_completed_initiative_uses_complete_weight(tmp_path):
    directory = tmp_path / "done"
    directory.mkdir()
    (directory / "x.json").write_text(
        '{"title": "x", "timestampMs": 1, "completed": true,'
        ' "weight": {"incomplete": 1, "complete": 7}}',
        encoding="utf-8",
    )
    loaded = _load(directory)
    weights = create_graph(loaded.initiatives, loaded.reference_detector).weights
    assert weights.node_weights[initiative_address((REMOTE, "x.json"))] == 7.0


def test_loader_delegates(initiatives_dir):
    loader = InitiativesLoader()
    loaded = loader.load_directory(
        InitiativesDirectory(str(initiatives_dir), REMOTE), SilentTaskReporter()
    )
    assert loader.create_graph(loaded.initiatives, loaded.reference_detector).graph.has_node(INIT_1)
    assert loader.declaration().name == "Initiatives"
