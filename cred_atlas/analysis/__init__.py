"""
cred_atlas.analysis — Static per-source metadata used to weight and score graphs.

Modules:
    plugin_declaration — Node/edge types, default weights, scoring user types.
"""
