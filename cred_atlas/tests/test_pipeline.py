"""
cred_atlas/tests/test_pipeline.py — End-to-end tests for run_load_pipeline().

The solver is a stand-in: a uniform distribution over the node order for each
of two intervals. With k scoring nodes among n, each node then gets
interval_weight / k cred per interval.
"""

import os

import numpy as np
import pytest

from cred_atlas.analysis.plugin_declaration import scoring_prefixes
from cred_atlas.backend.plugin_loaders import MirrorEnv
from cred_atlas.core.distribution_to_cred import Interval, IntervalDistribution
from cred_atlas.errors import ConfigurationError, SourceIOError
from cred_atlas.pipeline import run_load_pipeline
from cred_atlas.plugins import github, identity

INTERVALS = [(Interval(0, 100), 10.0), (Interval(100, 200), 4.0)]


def uniform_solver(weighted_graph, order):
    n = len(order)
    return [
        IntervalDistribution(interval, weight, np.full(n, 1.0 / n))
        for interval, weight in INTERVALS
    ]


def test_full_run(loaders, mirror_env, full_project, data_directory):
    result = run_load_pipeline(full_project, loaders, mirror_env, uniform_solver, data_directory)

    # Scoring nodes after contraction: identity alice and GitHub user bob.
    alice = identity.identity_address("alice")
    bob = github.user_address("bob")
    assert result.scoring_prefixes == scoring_prefixes(result.plugin_declarations)
    assert alice in result.node_order
    assert bob in result.node_order

    for (_, weight), cred in zip(INTERVALS, result.cred_scores.interval_cred_scores):
        np.testing.assert_allclose(cred, np.full(len(result.node_order), weight / 2))

    table = result.cred_table()
    assert table.loc["/".join(alice), "total"] == pytest.approx(7.0)


def test_full_run_stores_artifacts(loaders, mirror_env, full_project, data_directory):
    result = run_load_pipeline(full_project, loaders, mirror_env, uniform_solver, data_directory)
    assert sorted(os.listdir(result.project_directory)) == [
        "cred.json",
        "pluginDeclarations.json",
        "project.json",
        "weightedGraph.json",
    ]
    assert data_directory.list_projects() == [full_project.id]


def test_run_without_storage(loaders, mirror_env, full_project, data_directory):
    result = run_load_pipeline(full_project, loaders, mirror_env, uniform_solver)
    assert result.project_directory is None
    assert data_directory.list_projects() == []


def test_explicit_scoring_prefixes(loaders, mirror_env, full_project):
    """Scoring everything: each node gets weight / n."""
    result = run_load_pipeline(
        full_project, loaders, mirror_env, uniform_solver, scoring_prefixes=[()]
    )
    n = len(result.node_order)
    np.testing.assert_allclose(result.cred_scores.interval_cred_scores[0], np.full(n, 10.0 / n))


def test_solver_receives_contracted_graph(loaders, mirror_env, full_project):
    seen = {}

    def solver(weighted_graph, order):
        seen["nodes"] = set(weighted_graph.graph.nodes)
        seen["order"] = list(order)
        return []

    result = run_load_pipeline(full_project, loaders, mirror_env, solver)
    assert github.user_address("alice-gh") not in seen["nodes"]
    assert seen["order"] == result.node_order
    assert result.cred_scores.intervals == ()


def test_configuration_error_stores_nothing(loaders, mirror_env, full_project, data_directory, reporter):
    env = MirrorEnv(None, mirror_env.initiatives_directory, reporter, data_directory)
    with pytest.raises(ConfigurationError):
        run_load_pipeline(full_project, loaders, env, uniform_solver, data_directory)
    assert data_directory.list_projects() == []


def test_graph_failure_aborts_run(loaders, mirror_env, full_project, data_directory):
    loaders.github.fail_with["create_graph"] = RuntimeError("cache unreadable")
    with pytest.raises(SourceIOError):
        run_load_pipeline(full_project, loaders, mirror_env, uniform_solver, data_directory)
    assert data_directory.list_projects() == []
