"""
manuscript_engine -- Keeps a novel project's sidecar metadata in step with its files.

Modules:
    config           File names and default exclude patterns.
    errors           Error taxonomy, OperationResult, RewriteReport.
    models           Pydantic entry and descriptor models, validation.
    locks            Per-directory lock registry.
    paths            Project-relative path normalization.
    project          Project root and descriptor.
    meta_store       Sidecar load/validate/save.
    links            Markdown link parsing and rewriting.
    reference_graph  Forward/backward reference index.
    link_rewriter    Project-wide reference rewrite after a path change.
    file_status      Tracked/untracked/missing listing.
    orchestrator     Create/delete/rename/move/reorder.
    mutators         Tag/reference/character/foreshadowing/review setters.
    context          ProjectContext wiring all of the above.
"""

__version__ = "0.1.0"
