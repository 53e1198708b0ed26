"""
cred_atlas/cli.py — Command-line interface for Cred Atlas project files.

Usage:
    python -m cred_atlas upgrade project.json [-o out.json]   # rewrite at current version
    python -m cred_atlas status                                # data directory overview
    python -m cred_atlas declarations project.json             # applicable declarations

All commands read CRED_ATLAS_DIRECTORY, GITHUB_TOKEN and INITIATIVES_DIRECTORY
from .env in the working directory (or the path given by --env-file) before
falling back to the process environment.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path

from cred_atlas.analysis import plugin_declaration
from cred_atlas.backend.data_directory import DataDirectory, directory_for_project_id
from cred_atlas.backend.plugin_loaders import PluginLoaders, applicable_sources, declarations
from cred_atlas.config import DEFAULT_CONFIG
from cred_atlas.core.project import Project, project_from_json, project_to_json
from cred_atlas.errors import CredAtlasError
from cred_atlas.plugins import discourse, github
from cred_atlas.plugins.identity import IdentityLoader
from cred_atlas.plugins.initiatives import InitiativesLoader


# ── .env loader ───────────────────────────────────────────────────────────────

def _parse_env_line(line: str) -> tuple[str, str] | None:
    """
    One ``KEY=value`` (optionally ``export KEY=value``) assignment, or None for
    blanks, comments and lines without '='. A matching pair of quotes around
    the value is removed.
    """
    line = line.strip()
    if not line or line.startswith("#") or "=" not in line:
        return None
    if line.startswith("export "):
        line = line[len("export "):]
    key, _, value = line.partition("=")
    key, value = key.strip(), value.strip()
    if not key:
        return None
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
        value = value[1:-1]
    return key, value


def _load_dotenv(env_file: str | None = None) -> dict[str, str]:
    """
    Seed os.environ from a .env file so CredAtlasConfig.from_env() sees
    CRED_ATLAS_DIRECTORY, GITHUB_TOKEN and INITIATIVES_DIRECTORY.

    Variables already set in the process win. Returns only what this call set.

    Args:
        env_file: Path given with --env-file; None means ./.env if it exists.
    """
    path = Path(env_file) if env_file is not None else Path.cwd() / ".env"
    if not path.is_file():
        return {}

    loaded: dict[str, str] = {}
    with open(path, encoding="utf-8") as fh:
        for raw_line in fh:
            pair = _parse_env_line(raw_line)
            if pair is None or pair[0] in os.environ:
                continue
            os.environ[pair[0]] = pair[1]
            loaded[pair[0]] = pair[1]

    # Values can hold tokens; only names are logged.
    logger.debug("Loaded %s from %s.", sorted(loaded), path)
    return loaded


# ── Logging setup ─────────────────────────────────────────────────────────────

def _setup_logging(level: str = "INFO") -> None:
    """Send cred_atlas log records to stderr, keeping stdout for command output."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s  %(levelname)-8s  %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )


logger = logging.getLogger("cred_atlas.cli")


# ── Helpers ───────────────────────────────────────────────────────────────────

class _DeclarationOnlyLoader:
    """Loader exposing a static declaration; used where no I/O is needed."""

    def __init__(self, declaration: plugin_declaration.PluginDeclaration) -> None:
        self._declaration = declaration

    def declaration(self) -> plugin_declaration.PluginDeclaration:
        return self._declaration


def _static_loaders() -> PluginLoaders:
    return PluginLoaders(
        github=_DeclarationOnlyLoader(github.declaration),
        discourse=_DeclarationOnlyLoader(discourse.declaration),
        identity=IdentityLoader(),
        initiatives=InitiativesLoader(),
    )


def _read_project(path: str) -> Project:
    with open(path, "r", encoding="utf-8") as fh:
        return project_from_json(json.load(fh))


# ── Subcommand: upgrade ───────────────────────────────────────────────────────

def cmd_upgrade(args: argparse.Namespace) -> int:
    """Rewrite a project document of any known version at the current version."""
    try:
        project = _read_project(args.project_file)
    except (OSError, ValueError, CredAtlasError) as exc:
        logger.error("Cannot read %s: %s", args.project_file, exc)
        return 1

    document = json.dumps(project_to_json(project), indent=2)
    if args.output:
        with open(args.output, "w", encoding="utf-8") as fh:
            fh.write(document + "\n")
        logger.info("Wrote project %r to %s.", project.id, args.output)
    else:
        print(document)
    return 0


# ── Subcommand: status ────────────────────────────────────────────────────────

def cmd_status(args: argparse.Namespace) -> int:
    """Show credentials and the projects stored in the data directory."""
    config = DEFAULT_CONFIG.from_env()
    data_directory = DataDirectory(config.data_directory, config)

    print("\nCred Atlas — Status Report")
    print("=" * 40)
    print(f"  Data directory        : {os.path.abspath(config.data_directory)}")
    print(f"  GITHUB_TOKEN          : {'✓ present' if config.github_token else '✗ not set'}")
    print(
        "  INITIATIVES_DIRECTORY : "
        f"{config.initiatives_directory or '✗ not set'}"
    )

    try:
        project_ids = data_directory.list_projects()
    except ValueError as exc:
        logger.error("Cannot list projects: %s", exc)
        return 1

    print(f"\n  Projects ({len(project_ids)}):")
    if not project_ids:
        print("    (no projects stored yet)")
    for project_id in project_ids:
        try:
            project = data_directory.load_project(project_id)
        except (OSError, ValueError, CredAtlasError) as exc:
            print(f"    ? {project_id:<30} (unreadable: {exc})")
            continue
        sources = ", ".join(s.value for s in applicable_sources(project)) or "no sources"
        project_directory = directory_for_project_id(project_id, config.data_directory, config)
        artifacts = [
            name
            for name in ("weightedGraph.json", "cred.json", "pluginDeclarations.json")
            if os.path.isfile(os.path.join(project_directory, name))
        ]
        print(f"    ✓ {project_id:<30} {sources}")
        print(f"      {', '.join(artifacts) or '(project.json only)'}")

    print()
    return 0


# ── Subcommand: declarations ──────────────────────────────────────────────────

def cmd_declarations(args: argparse.Namespace) -> int:
    """Print the plugin declarations that apply to a project, as JSON."""
    try:
        project = _read_project(args.project_file)
    except (OSError, ValueError, CredAtlasError) as exc:
        logger.error("Cannot read %s: %s", args.project_file, exc)
        return 1

    applicable = declarations(_static_loaders(), project)
    logger.info("Project %r: %d applicable declarations.", project.id, len(applicable))
    print(json.dumps(plugin_declaration.to_json(applicable), indent=2))
    return 0


# ── Argument parser ───────────────────────────────────────────────────────────

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cred-atlas",
        description=(
            "Cred Atlas — contribution scores from code, forum and initiative graphs.\n"
            "Reads CRED_ATLAS_DIRECTORY and GITHUB_TOKEN from .env automatically."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Rewrite a 0.3.x/0.4.0 project file at the current version
  python -m cred_atlas upgrade old_project.json -o project.json

  # List stored projects and which artifacts they have
  python -m cred_atlas status

  # Show node/edge types and default weights for a project
  python -m cred_atlas declarations project.json
        """,
    )

    # Global flags
    parser.add_argument(
        "--env-file",
        default=None,
        metavar="PATH",
        help="Path to .env file (default: .env in the working directory)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: INFO)",
    )

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")
    subparsers.required = True

    # upgrade
    p_upgrade = subparsers.add_parser(
        "upgrade",
        help="Rewrite a project document at the current version",
    )
    p_upgrade.add_argument("project_file", metavar="PROJECT_JSON")
    p_upgrade.add_argument(
        "-o", "--output", default=None, metavar="PATH",
        help="Output path (default: stdout)",
    )
    p_upgrade.set_defaults(func=cmd_upgrade)

    # status
    p_status = subparsers.add_parser(
        "status",
        help="Show credentials and stored projects without running anything",
    )
    p_status.set_defaults(func=cmd_status)

    # declarations
    p_declarations = subparsers.add_parser(
        "declarations",
        help="Print the plugin declarations that apply to a project",
    )
    p_declarations.add_argument("project_file", metavar="PROJECT_JSON")
    p_declarations.set_defaults(func=cmd_declarations)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _load_dotenv(args.env_file)
    _setup_logging(args.log_level)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
