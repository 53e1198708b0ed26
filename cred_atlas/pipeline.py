"""
cred_atlas/pipeline.py — Single-call load pipeline.

Provides run_load_pipeline() which takes one project from configuration to
stored cred scores, executing the stages in dependency order and returning
every intermediate result.

Usage:
    from cred_atlas.pipeline import run_load_pipeline
    result = run_load_pipeline(project, loaders, env, solver, data_directory)
    print(result.cred_table().sort_values("total", ascending=False).head())

The random-walk solver is supplied by the caller: any callable taking the
contracted WeightedGraph and its node order and returning a sequence of
IntervalDistributions over that order.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

import pandas as pd

from cred_atlas.analysis.plugin_declaration import PluginDeclaration
from cred_atlas.analysis.plugin_declaration import scoring_prefixes as declared_scoring_prefixes
from cred_atlas.backend.data_directory import DataDirectory
from cred_atlas.backend.plugin_loaders import (
    CachedProject,
    GraphEnv,
    MirrorEnv,
    PluginGraphs,
    PluginLoaders,
    contract_plugin_graphs,
    create_plugin_graphs,
    create_reference_detector,
    declarations,
    update_mirror,
)
from cred_atlas.config import DEFAULT_CONFIG, CredAtlasConfig
from cred_atlas.core.address import NodeAddress
from cred_atlas.core.distribution_to_cred import (
    CredScores,
    IntervalDistribution,
    cred_table,
    distribution_to_cred,
)
from cred_atlas.core.project import Project
from cred_atlas.core.references import ReferenceDetector
from cred_atlas.core.weighted_graph import WeightedGraph, node_order

logger = logging.getLogger(__name__)

Solver = Callable[[WeightedGraph, list[NodeAddress]], Sequence[IntervalDistribution]]


@dataclass
class PipelineResult:
    """
    Complete output of one load pipeline run.

    Contains every intermediate for inspection; cred_scores is indexed by
    node_order.
    """

    project: Project
    plugin_declarations: list[PluginDeclaration]
    cached_project: CachedProject
    reference_detector: ReferenceDetector
    plugin_graphs: PluginGraphs
    weighted_graph: WeightedGraph
    node_order: list[NodeAddress]
    scoring_prefixes: list[NodeAddress]
    cred_scores: CredScores
    project_directory: Optional[str] = None

    def cred_table(self) -> pd.DataFrame:
        return cred_table(self.cred_scores, self.node_order)


def run_load_pipeline(
    project: Project,
    loaders: PluginLoaders,
    env: MirrorEnv,
    solver: Solver,
    data_directory: Optional[DataDirectory] = None,
    scoring_prefixes: Optional[Sequence[NodeAddress]] = None,
    config: CredAtlasConfig = DEFAULT_CONFIG,
) -> PipelineResult:
    """
    Execute the load pipeline for one project.

    Stage order:
        1. Plugin declarations for the applicable sources
        2. Mirror (concurrent per source)
        3. Reference detector composition
        4. Per-source graphs (concurrent per source)
        5. Merge and identity contraction
        6. External solver
        7. Distribution -> cred
        8. Storage (if data_directory is given)

    Any stage failure aborts the run; nothing is stored unless every stage
    before storage succeeded.

    Args:
        project:          The project to load.
        loaders:          One loader per source.
        env:              Tokens, directories, reporter and cache for the run.
        solver:           (weighted_graph, node_order) -> IntervalDistributions.
        data_directory:   Where to store the results; None skips storage.
        scoring_prefixes: Scoring node prefixes. Defaults to the user types
                          of the applicable declarations.
        config:           CredAtlasConfig (max_workers for concurrent stages).

    Returns:
        PipelineResult with every intermediate and final result.
    """
    logger.info("Load pipeline starting for project %r.", project.id)

    # ── 1. Declarations ───────────────────────────────────────────────────────
    plugin_declarations = declarations(loaders, project)
    prefixes = (
        list(scoring_prefixes)
        if scoring_prefixes is not None
        else declared_scoring_prefixes(plugin_declarations)
    )
    logger.info(
        "Stage 1/8: %d applicable declarations (%s).",
        len(plugin_declarations),
        ", ".join(d.name for d in plugin_declarations) or "none",
    )

    # ── 2. Mirror ─────────────────────────────────────────────────────────────
    cached_project = update_mirror(loaders, env, project, config)
    logger.info("Stage 2/8: mirror complete.")

    # ── 3. Reference detector ─────────────────────────────────────────────────
    graph_env = GraphEnv(github_token=env.github_token)
    reference_detector = create_reference_detector(loaders, graph_env, cached_project)
    logger.info("Stage 3/8: reference detector ready.")

    # ── 4. Plugin graphs ──────────────────────────────────────────────────────
    plugin_graphs = create_plugin_graphs(
        loaders, graph_env, cached_project, reference_detector, config
    )
    logger.info("Stage 4/8: %d plugin graphs built.", len(plugin_graphs.graphs))

    # ── 5. Merge and contract ─────────────────────────────────────────────────
    weighted_graph = contract_plugin_graphs(loaders, plugin_graphs)
    order = node_order(weighted_graph)
    logger.info(
        "Stage 5/8: contracted graph has %d nodes, %d edges.",
        len(order),
        weighted_graph.graph.number_of_edges(),
    )

    # ── 6. Solver ─────────────────────────────────────────────────────────────
    distributions = solver(weighted_graph, order)
    logger.info("Stage 6/8: solver produced %d intervals.", len(distributions))

    # ── 7. Cred ───────────────────────────────────────────────────────────────
    cred_scores = distribution_to_cred(distributions, order, prefixes)
    logger.info("Stage 7/8: cred computed.")

    # ── 8. Storage ────────────────────────────────────────────────────────────
    project_directory = None
    if data_directory is not None:
        project_directory = data_directory.store_project(
            project,
            weighted_graph=weighted_graph,
            cred=(cred_scores, order),
            plugin_declarations=plugin_declarations,
        )
        logger.info("Stage 8/8: stored in %s.", project_directory)
    else:
        logger.info("Stage 8/8: no data directory, results not stored.")

    return PipelineResult(
        project=project,
        plugin_declarations=plugin_declarations,
        cached_project=cached_project,
        reference_detector=reference_detector,
        plugin_graphs=plugin_graphs,
        weighted_graph=weighted_graph,
        node_order=order,
        scoring_prefixes=prefixes,
        cred_scores=cred_scores,
        project_directory=project_directory,
    )
