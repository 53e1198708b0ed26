"""
cred_atlas.backend — Running sources against a data directory.

Modules:
    task_reporter   — Start/finish progress notifications.
    data_directory  — SQLite cache databases and compat-tagged project storage.
    plugin_loaders  — Mirror, reference-detector and graph stages across sources.
"""
