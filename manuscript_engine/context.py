"""
manuscript_engine/context.py -- Wiring for one open project.

A :class:`ProjectContext` owns every engine component for one project and
hands each of them its collaborators explicitly.  There is no process-wide
instance: two contexts for two projects (or two test cases) share nothing,
not even locks.  Components that mutate the same project must come from
the same context so that they share its lock registry.

Usage:
    from manuscript_engine.context import ProjectContext

    ctx = ProjectContext.open("/novels/harbor")
    ctx.orchestrator.create_entry(ctx.root / "contents", "chapter2.txt", "content")
    ctx.mutators.add_tag(ctx.root / "contents", "chapter2.txt", "draft")
    ctx.graph.incoming("contents/chapter2.txt")
"""

from manuscript_engine.config import EngineConfig
from manuscript_engine.file_status import FileStatusService
from manuscript_engine.link_rewriter import LinkRewriter
from manuscript_engine.locks import DirectoryLockRegistry
from manuscript_engine.meta_store import MetadataStore
from manuscript_engine.mutators import AttributeMutators
from manuscript_engine.orchestrator import FileMutationOrchestrator
from manuscript_engine.project import Project
from manuscript_engine.reference_graph import ReferenceGraph


class ProjectContext:
    """All engine components for one project, sharing one lock registry.

    Parameters
    ----------
    project : Project
        The opened project.
    locks : DirectoryLockRegistry, optional
        Lock registry to share; a fresh one is created when omitted.
    """

    def __init__(self, project: Project, locks: DirectoryLockRegistry | None = None):
        self.project = project
        self.config = project.config
        self.locks = locks or DirectoryLockRegistry()

        self.store = MetadataStore(self.locks, self.config)
        self.graph = ReferenceGraph(project, self.store)
        self.rewriter = LinkRewriter(project, self.store)
        self.status = FileStatusService(project, self.store)
        self.orchestrator = FileMutationOrchestrator(
            project, self.store, self.rewriter, graph=self.graph,
        )
        self.mutators = AttributeMutators(project, self.store, graph=self.graph)

    @classmethod
    def open(cls, start, config: EngineConfig | None = None) -> "ProjectContext":
        """Open the project enclosing *start*."""
        return cls(Project.open(start, config))

    @classmethod
    def create(cls, root, title: str, author: str, tags=None,
               config: EngineConfig | None = None) -> "ProjectContext":
        """Create a new project at *root* and open it."""
        return cls(Project.create(root, title, author, tags=tags, config=config))

    @property
    def root(self):
        return self.project.root
