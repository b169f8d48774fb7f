"""Command-line interface for libtree: scan for projects, show library dependencies."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from libtree import __version__
from libtree.api import library_tree, scan_projects
from libtree.core.finder import load_workspace, workspace_roots_from_env
from libtree.core.state import ProjectState
from libtree.core.workspace import Workspace


def _roots(paths: list[str] | None) -> list[Path]:
    if paths:
        return [Path(p) for p in paths]
    return workspace_roots_from_env() or [Path.cwd()]


def _print_tree_text(tree: dict, prefix: str = "") -> None:
    """Print a library tree (as returned by library_tree) as indented text."""
    if not prefix:
        marker = " (library)" if tree.get("is_library") else ""
        print(f"{tree['name']}{marker}")
    libraries = tree.get("libraries", [])
    for i, entry in enumerate(libraries):
        is_last = i == len(libraries) - 1
        branch = "└── " if is_last else "├── "
        if not entry["resolved"]:
            label = f"{entry['path']} [unresolved]"
        elif entry.get("cycle"):
            label = f"{entry['name']} ({entry['path']}) [cycle]"
        else:
            label = f"{entry['name']} ({entry['path']})"
        print(f"{prefix}{branch}{label}")
        child_prefix = prefix + ("    " if is_last else "│   ")
        _print_tree_text(entry, child_prefix)


def _find_state(workspace: Workspace, name: str) -> ProjectState | None:
    state = workspace.get_project(name)
    if state is None:
        print(f"Project not found: {name}", file=sys.stderr)
    return state


def cmd_scan(args: argparse.Namespace) -> int:
    """Scan directories for projects."""
    handles = scan_projects(_roots(args.paths), max_depth=args.depth)

    if args.json:
        print(json.dumps([h.to_dict() for h in handles], indent=2))
        return 0
    if not handles:
        print("No projects found.")
        return 0
    print(f"Found {len(handles)} project(s):\n")
    for handle in handles:
        if args.verbose:
            print(f"  {handle.name}: {handle.location}")
        else:
            print(f"  {handle.name}")
    return 0


def cmd_deps(args: argparse.Namespace) -> int:
    """Print the flattened library list of a project, highest priority first."""
    workspace = load_workspace(_roots(args.workspace), max_depth=args.depth)
    state = _find_state(workspace, args.project)
    if state is None:
        return 1

    projects = state.full_library_projects
    unresolved = [lib.relative_path for lib in state.libraries if not lib.is_resolved]

    if args.json:
        print(
            json.dumps(
                {
                    "project": state.project.name,
                    "libraries": [h.to_dict() for h in projects],
                    "unresolved": unresolved,
                },
                indent=2,
            )
        )
    else:
        if not projects:
            print(f"{state.project.name} has no resolved libraries.")
        for i, handle in enumerate(projects, start=1):
            print(f"  {i}. {handle.name}  {handle.location}")
    for path in unresolved:
        print(f"warning: unresolved library reference: {path}", file=sys.stderr)
    return 0


def cmd_tree(args: argparse.Namespace) -> int:
    """Show the declared library links of a project as a tree."""
    workspace = load_workspace(_roots(args.workspace), max_depth=args.depth)
    state = _find_state(workspace, args.project)
    if state is None:
        return 1

    tree = library_tree(state)
    if args.json:
        print(json.dumps(tree, indent=2))
    else:
        _print_tree_text(tree)
    return 0


def _add_workspace_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-w",
        "--workspace",
        action="append",
        metavar="PATH",
        help="Directory to scan for projects (can be repeated; default: $LIBTREE_WORKSPACE or .)",
    )
    parser.add_argument(
        "-d",
        "--depth",
        type=int,
        default=4,
        help="How deep to look for projects (default: 4)",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Output as JSON",
    )


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        prog="libtree",
        description="Resolve library project references and show their priority order.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: WARNING)",
    )

    subparsers = parser.add_subparsers(dest="command", title="commands")

    # libtree scan
    scan_parser = subparsers.add_parser(
        "scan",
        help="Find projects",
        description="Find directories holding a project.properties file.",
    )
    scan_parser.add_argument(
        "paths",
        nargs="*",
        help="Directories to scan (default: $LIBTREE_WORKSPACE or .)",
    )
    scan_parser.add_argument(
        "-d",
        "--depth",
        type=int,
        default=4,
        help="Maximum directory depth (default: 4)",
    )
    scan_parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show project locations",
    )
    scan_parser.add_argument(
        "--json",
        action="store_true",
        help="Output as JSON",
    )
    scan_parser.set_defaults(func=cmd_scan)

    # libtree deps
    deps_parser = subparsers.add_parser(
        "deps",
        help="Show the prioritized library list of a project",
        description=(
            "Resolve library references and print all direct and indirect "
            "libraries, highest priority first."
        ),
    )
    deps_parser.add_argument("project", help="Project name")
    _add_workspace_args(deps_parser)
    deps_parser.set_defaults(func=cmd_deps)

    # libtree tree
    tree_parser = subparsers.add_parser(
        "tree",
        help="Show declared library references as a tree",
        description="Show the libraryRefN entries of a project and what they resolve to.",
    )
    tree_parser.add_argument("project", help="Project name")
    _add_workspace_args(tree_parser)
    tree_parser.set_defaults(func=cmd_tree)

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.command is None:
        parser.print_help()
        return 0

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
