"""
cred_atlas.core — Source-independent data model and algorithms.

Modules:
    address               — Node/edge addresses and prefix matching.
    compat                — Versioned JSON envelopes and upgrade chains.
    weighted_graph        — NetworkX address graphs with prefix weights; merge.
    references            — Reference detectors (mapped, cascading).
    project               — Project value type and its version history.
    distribution_to_cred  — Per-interval distributions → calibrated cred.
"""
