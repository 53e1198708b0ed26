"""
cred_atlas/core/distribution_to_cred.py — Turning probability mass into cred.

The random-walk solver produces, for each time interval, a probability
distribution over the graph's nodes (in a fixed node order) and an interval
weight: the total amount of cred minted in that interval.

Normalisation, per interval:

    scoring_mass = sum(distribution[j] for j scoring)
    cred[j]      = interval_weight * distribution[j] / scoring_mass   (all j)
    cred[j]      = 0                                   if scoring_mass == 0

"Scoring" nodes are those whose address has one of the scoring prefixes
(usually user and identity nodes). They fix the scale so that the scoring
nodes' cred sums to exactly interval_weight. Non-scoring nodes are reported
on the same scale; consumers decide whether to show them.
"""

import logging
from dataclasses import dataclass
from typing import Sequence

import numpy as np
import pandas as pd

from cred_atlas.core import address as addr
from cred_atlas.core.compat import CompatInfo, from_compat, to_compat

logger = logging.getLogger(__name__)

COMPAT_INFO = CompatInfo(type="cred_atlas/credScores", version="0.1.0")


@dataclass(frozen=True)
class Interval:
    start_time_ms: int
    end_time_ms: int


@dataclass(frozen=True)
class IntervalDistribution:
    interval: Interval
    interval_weight: float
    distribution: np.ndarray


@dataclass(frozen=True)
class CredScores:
    """
    Output of distribution_to_cred().

    Fields:
        intervals:            Interval bounds, in input order.
        interval_cred_scores: One float64 array per interval, indexed by the
                              node order the distributions were given in.
    """

    intervals: tuple[Interval, ...]
    interval_cred_scores: tuple[np.ndarray, ...]


def scoring_mask(
    node_order: Sequence[addr.NodeAddress],
    scoring_prefixes: Sequence[addr.NodeAddress],
) -> np.ndarray:
    """Boolean array: True where node_order[j] has some scoring prefix."""
    prefixes = list(scoring_prefixes)
    return np.array(
        [addr.matches_any(node, prefixes) for node in node_order], dtype=bool
    )


def distribution_to_cred(
    distributions: Sequence[IntervalDistribution],
    node_order: Sequence[addr.NodeAddress],
    scoring_prefixes: Sequence[addr.NodeAddress],
) -> CredScores:
    """
    Compute cred per node per interval from the solver's distributions.

    Pure; raises nothing for numeric edge cases. An empty distributions
    sequence yields empty CredScores; an interval whose scoring mass is zero
    yields all-zero cred even if non-scoring nodes carry mass.

    Args:
        distributions:    IntervalDistributions, each over node_order.
        node_order:       Node addresses giving the index of each entry.
        scoring_prefixes: Address prefixes of the scoring nodes. The empty
                          address scores every node; an empty sequence
                          scores none.
    """
    mask = scoring_mask(node_order, scoring_prefixes)
    intervals: list[Interval] = []
    scores: list[np.ndarray] = []

    for d in distributions:
        distribution = np.asarray(d.distribution, dtype=np.float64)
        scoring_mass = float(distribution[mask].sum())
        if scoring_mass == 0:
            cred = np.zeros(len(distribution), dtype=np.float64)
        else:
            cred = d.interval_weight * distribution / scoring_mass
        intervals.append(d.interval)
        scores.append(cred)

    logger.debug(
        "distribution_to_cred: %d intervals, %d nodes, %d scoring.",
        len(intervals),
        len(node_order),
        int(mask.sum()),
    )
    return CredScores(intervals=tuple(intervals), interval_cred_scores=tuple(scores))


def cred_table(scores: CredScores, node_order: Sequence[addr.NodeAddress]) -> pd.DataFrame:
    """
    Tabular view of CredScores: one row per node, one column per interval
    (labelled by interval start), plus a 'total' column.

    Intervals sharing a start time keep separate columns under the same label.
    """
    index = [addr.to_string(n) for n in node_order]
    if scores.interval_cred_scores:
        matrix = np.column_stack(scores.interval_cred_scores).astype(np.float64)
    else:
        matrix = np.zeros((len(index), 0), dtype=np.float64)
    df = pd.DataFrame(
        matrix, index=index, columns=[i.start_time_ms for i in scores.intervals]
    )
    df["total"] = matrix.sum(axis=1)
    return df


def cred_scores_to_json(scores: CredScores, node_order: Sequence[addr.NodeAddress]) -> list:
    payload = {
        "nodeOrder": [list(n) for n in node_order],
        "intervals": [
            {"startTimeMs": i.start_time_ms, "endTimeMs": i.end_time_ms}
            for i in scores.intervals
        ],
        "intervalCredScores": [cred.tolist() for cred in scores.interval_cred_scores],
    }
    return to_compat(COMPAT_INFO, payload)


def cred_scores_from_json(document: list) -> tuple[CredScores, list[addr.NodeAddress]]:
    payload = from_compat(COMPAT_INFO, document)
    scores = CredScores(
        intervals=tuple(
            Interval(i["startTimeMs"], i["endTimeMs"]) for i in payload["intervals"]
        ),
        interval_cred_scores=tuple(
            np.asarray(c, dtype=np.float64) for c in payload["intervalCredScores"]
        ),
    )
    return scores, [tuple(n) for n in payload["nodeOrder"]]
