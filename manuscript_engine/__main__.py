"""
manuscript_engine/__main__.py -- Diagnostic command line.

Inspects a project without changing it.

Usage::

    python -m manuscript_engine status  /novels/harbor/contents
    python -m manuscript_engine refs    /novels/harbor/contents/chapter1.txt
    python -m manuscript_engine validate /novels/harbor
"""

from __future__ import annotations

import argparse
import logging
import os
import sys

from manuscript_engine.context import ProjectContext
from manuscript_engine.errors import EngineError


def _setup_logging(verbose: bool) -> None:
    """Configure logging for command-line use."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _status(ctx: ProjectContext, path: str) -> int:
    for entry in ctx.status.list_entries(path):
        flag = "?" if entry.is_untracked else "!" if entry.is_missing else " "
        suffix = "/" if entry.is_directory else ""
        print(f"{flag} {entry.type:<12} {entry.name}{suffix}")
    return 0


def _refs(ctx: ProjectContext, path: str) -> int:
    rel = ctx.project.relative(os.path.abspath(path)) or path
    print(f"{rel}")
    for ref in ctx.graph.outgoing(rel):
        print(f"  -> {ref['target']} ({ref['kind']})")
    for ref in ctx.graph.incoming(rel):
        print(f"  <- {ref['source']} ({ref['kind']})")
    return 0


def _validate(ctx: ProjectContext, _path: str) -> int:
    summary = ctx.status.project_summary()
    for rel in summary["missing"]:
        print(f"missing:   {rel}")
    for rel in summary["untracked"]:
        print(f"untracked: {rel}")
    for item in summary["invalid"]:
        print(f"invalid:   {item['path']}\n{item['error']}")
    for ref in ctx.graph.broken_references():
        print(f"broken:    {ref['source']} -> {ref['target']} ({ref['kind']})")
    return 1 if summary["invalid"] else 0


_COMMANDS = {"status": _status, "refs": _refs, "validate": _validate}


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(prog="manuscript_engine")
    parser.add_argument("command", choices=sorted(_COMMANDS))
    parser.add_argument("path")
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args(argv)

    _setup_logging(args.verbose)
    logger = logging.getLogger("manuscript_engine")
    try:
        ctx = ProjectContext.open(args.path)
        return _COMMANDS[args.command](ctx, args.path)
    except EngineError as exc:
        logger.error("%s", exc)
        return 2


if __name__ == "__main__":
    sys.exit(main())
