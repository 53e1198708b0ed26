"""
cred_atlas.plugins — One module per data source.

Modules:
    github       — Code-hosting source: declaration and loader contract.
    discourse    — Forum source: declaration and loader contract.
    identity     — Manual identity merges and graph contraction.
    initiatives  — Initiative files: directory loading and graph construction.

Every source addresses its nodes and edges under its own ("cred_atlas", <source>)
prefix, so per-source graphs merge without collisions.
"""
