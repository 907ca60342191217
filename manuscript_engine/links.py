"""
manuscript_engine/links.py -- Markdown hyperlink detection and rewriting.

Hyperlink references are never stored; they are found by scanning file
text for ``[text](target)`` or ``[text](target "title")`` and resolving
``target`` against the project.
"""

from __future__ import annotations

import re
from typing import NamedTuple

from manuscript_engine.paths import ProjectPaths, is_external_link

_LINK_RE = re.compile(r'\[([^\]]*)\]\(([^\s)]*)(?:\s+"([^"]*)")?\)')


class MarkdownLink(NamedTuple):
    text: str
    url: str
    title: str | None


def parse_markdown_links(content: str) -> list[MarkdownLink]:
    """Every markdown link in *content*, in order of appearance."""
    return [
        MarkdownLink(m.group(1), m.group(2), m.group(3))
        for m in _LINK_RE.finditer(content)
    ]


def project_links(content: str, file_path, paths: ProjectPaths) -> list[str]:
    """Distinct project-relative targets linked from *content*.

    *file_path* is the absolute path of the file the content came from;
    relative links resolve against its directory.
    """
    targets: list[str] = []
    for link in parse_markdown_links(content):
        if not link.url or is_external_link(link.url):
            continue
        target = paths.normalize(link.url, file_path)
        if target and target not in targets:
            targets.append(target)
    return targets


def rewrite_links(content: str, file_path, paths: ProjectPaths,
                  old_path: str, new_path: str, previous_path=None) -> tuple[str, int]:
    """Point links that resolve to *old_path* (or under it) at *new_path*.

    *previous_path* is where the file lived when its links were written,
    if it has since moved; relative links are resolved from there so that
    they keep pointing at the same target from the new location.

    The replacement target is written project-root relative and the link
    title, if any, is kept.  Returns the new content and the number of
    links changed.
    """
    changed = 0

    def _replace(match: re.Match) -> str:
        nonlocal changed
        text, url, title = match.group(1), match.group(2), match.group(3)
        if not url or is_external_link(url):
            return match.group(0)
        written_for = paths.normalize(url, previous_path or file_path)
        if not written_for:
            return match.group(0)
        rebased = ProjectPaths.rebase(written_for, old_path, new_path)
        target = written_for if rebased is None else rebased
        if paths.normalize(url, file_path) == target:
            return match.group(0)
        changed += 1
        suffix = f' "{title}"' if title is not None else ""
        return f"[{text}]({target}{suffix})"

    return _LINK_RE.sub(_replace, content), changed
