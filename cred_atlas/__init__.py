"""
cred_atlas — Contribution scoring ("cred") across heterogeneous data sources.

Each data source (code hosting, discussion forum, initiative set) is mirrored
into a local cache and turned into a weighted graph. The per-source graphs are
merged, identities are contracted, and the per-interval probability mass an
external random-walk solver produces over the merged graph is normalised into
calibrated cred scores.

Subpackages:
- cred_atlas.core      — addresses, weighted graphs, projects, normalisation
- cred_atlas.analysis  — plugin declarations
- cred_atlas.plugins   — per-source declarations and loaders
- cred_atlas.backend   — mirror/graph orchestration, cache, storage
"""

__version__ = "0.1.0"
