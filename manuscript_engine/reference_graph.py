"""
manuscript_engine/reference_graph.py -- Project-wide reference index (NetworkX)

Builds a directed graph of every cross-file reference in a project.  Nodes
are project-relative file paths; an edge ``a -> b`` means "a refers to b"
and carries the set of ways it does so:

    manual      listed in the entry's ``references`` in a sidecar file
    hyperlink   a markdown link found in the file's text

The backward index is simply the graph's in-edges.  The graph is derived
data and is never persisted; mutations mark it dirty and the next query
rebuilds it.

Usage:
    from manuscript_engine.reference_graph import ReferenceGraph

    graph = ReferenceGraph(project, store)
    graph.build()
    graph.outgoing("settings/world.md")   # [{"target": ..., "kind": "manual"}]
    graph.incoming("contents/chapter1.txt")
"""

import logging
import os
import posixpath

import networkx as nx

from manuscript_engine.errors import EngineError
from manuscript_engine.links import project_links
from manuscript_engine.meta_store import MetadataStore
from manuscript_engine.paths import to_posix
from manuscript_engine.project import Project
from manuscript_engine.utils import read_text

logger = logging.getLogger(__name__)

MANUAL = "manual"
HYPERLINK = "hyperlink"


class ReferenceGraph:
    """In-memory directed graph of file references within one project.

    Parameters
    ----------
    project : Project
        The project whose tree is scanned.
    store : MetadataStore
        Used to read every directory's sidecar.
    """

    def __init__(self, project: Project, store: MetadataStore):
        self.project = project
        self.store = store
        self.graph: nx.DiGraph = nx.DiGraph()
        self._built = False
        self._dirty = False

    # ------------------------------------------------------------------
    # Build
    # ------------------------------------------------------------------

    def build(self) -> None:
        """Rebuild the whole graph from sidecars and file contents."""
        self.graph.clear()
        self._built = True
        self._dirty = False
        paths = self.project.paths

        # Pass 1: manual references from every managed directory
        for directory in self.project.walk_directories():
            try:
                meta = self.store.load(directory)
            except EngineError:
                logger.warning("Skipping unreadable metadata in %s", directory, exc_info=True)
                continue
            if meta is None:
                continue
            for entry in meta.files:
                if entry.is_directory:
                    continue
                source = paths.relative(entry.path)
                if not source:
                    continue
                self.graph.add_node(source, kind=entry.type, tracked=True)
                for ref in entry.references:
                    target = paths.normalize(ref, entry.path)
                    if target:
                        self._add_edge(source, target, MANUAL)

        # Pass 2: hyperlinks found in file text
        for file_path in self.project.walk_files(self.project.config.link_scan_extensions):
            self._scan_hyperlinks(file_path)

    def _scan_hyperlinks(self, file_path) -> None:
        source = self.project.relative(file_path)
        if not source:
            return
        try:
            content = read_text(file_path)
        except (OSError, UnicodeDecodeError):
            logger.debug("Could not scan %s for links", file_path, exc_info=True)
            return
        for target in project_links(content, file_path, self.project.paths):
            if target != source:
                self._add_edge(source, target, HYPERLINK)

    def _add_edge(self, source: str, target: str, kind: str) -> None:
        if self.graph.has_edge(source, target):
            self.graph.edges[source, target]["kinds"].add(kind)
        else:
            self.graph.add_edge(source, target, kinds={kind})

    # ------------------------------------------------------------------
    # Incremental maintenance
    # ------------------------------------------------------------------

    def mark_dirty(self) -> None:
        """Record that sidecars or files changed since the last build."""
        self._dirty = True

    def rebuild_if_dirty(self) -> bool:
        """Rebuild when never built or marked dirty.  Returns True if rebuilt."""
        if self._built and not self._dirty:
            return False
        self.build()
        return True

    def refresh_file(self, file_path) -> None:
        """Re-scan one file's hyperlinks after its text was edited."""
        self.rebuild_if_dirty()
        source = self.project.relative(file_path)
        if not source or source not in self.graph:
            self._scan_hyperlinks(file_path)
            return
        for _, target, data in list(self.graph.out_edges(source, data=True)):
            data["kinds"].discard(HYPERLINK)
            if not data["kinds"]:
                self.graph.remove_edge(source, target)
        if os.path.isfile(file_path):
            self._scan_hyperlinks(file_path)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def _key(self, path) -> str:
        path = str(path)
        if os.path.isabs(path):
            return self.project.relative(path) or ""
        return posixpath.normpath(to_posix(path))

    def outgoing(self, path) -> list[dict]:
        """References made by *path*: ``[{"target": ..., "kind": ...}]``."""
        self.rebuild_if_dirty()
        key = self._key(path)
        if key not in self.graph:
            return []
        return [
            {"target": target, "kind": kind}
            for _, target, data in sorted(self.graph.out_edges(key, data=True))
            for kind in sorted(data["kinds"])
        ]

    def incoming(self, path) -> list[dict]:
        """References pointing at *path*: ``[{"source": ..., "kind": ...}]``."""
        self.rebuild_if_dirty()
        key = self._key(path)
        if key not in self.graph:
            return []
        return [
            {"source": source, "kind": kind}
            for source, _, data in sorted(self.graph.in_edges(key, data=True))
            for kind in sorted(data["kinds"])
        ]

    def broken_references(self) -> list[dict]:
        """Edges whose target does not exist on disk."""
        self.rebuild_if_dirty()
        broken = []
        for source, target, data in sorted(self.graph.edges(data=True)):
            if not os.path.exists(self.project.paths.absolute(target)):
                for kind in sorted(data["kinds"]):
                    broken.append({"source": source, "target": target, "kind": kind})
        return broken

    def get_stats(self) -> dict:
        """Return node/edge counts split by reference kind."""
        self.rebuild_if_dirty()
        kinds = [k for _, _, data in self.graph.edges(data=True) for k in data["kinds"]]
        return {
            "node_count": self.graph.number_of_nodes(),
            "edge_count": self.graph.number_of_edges(),
            "manual_count": kinds.count(MANUAL),
            "hyperlink_count": kinds.count(HYPERLINK),
        }
