"""
Tests for manuscript_engine/link_rewriter.py -- LinkRewriter.

Validates:
    - Sidecar references and markdown links are both rewritten
    - Untouched files are reported neither updated nor failed
    - Failures are collected per file instead of raised
    - Paths outside the project are ignored
    - Nested projects are left alone
    - Relative links inside a moved file are re-based
"""

import os

import pytest
import yaml


@pytest.fixture
def rewriter(ctx):
    return ctx.rewriter


class TestRewrite:
    """Tests for LinkRewriter.rewrite."""

    def test_rewrites_text_and_sidecars(self, rewriter, ctx, novel):
        """Verify both reference kinds follow the new path."""
        settings = os.path.join(novel, "settings")
        report = rewriter.rewrite("contents/chapter1.txt", "contents/opening.txt")

        assert report.success
        assert sorted(report.updated_files) == sorted([
            os.path.join(settings, "world.md"),
            ctx.store.meta_path(settings),
        ])
        assert report.total_scanned_files > len(report.updated_files)
        assert ctx.store.load(settings).get("world.md").references == ["contents/opening.txt"]

    def test_absolute_paths(self, rewriter, ctx, novel):
        """Verify absolute old and new paths are accepted."""
        report = rewriter.rewrite(
            os.path.join(novel, "contents", "chapter2.txt"),
            os.path.join(novel, "contents", "finale.txt"),
        )
        assert report.success
        hero = ctx.store.load(os.path.join(novel, "settings")).get("hero.md")
        assert hero.references == ["contents/finale.txt"]

    def test_no_matches(self, rewriter):
        """Verify nothing is updated when no file refers to the path."""
        report = rewriter.rewrite("settings/places.md", "settings/locations.md")
        assert report.success
        assert report.updated_files == []

    def test_same_path(self, rewriter):
        """Verify a rewrite to the same path scans nothing."""
        report = rewriter.rewrite("contents/chapter1.txt", "contents/chapter1.txt")
        assert report.total_scanned_files == 0

    def test_outside_project(self, rewriter, tmp_path):
        """Verify paths outside the project are not rewritten."""
        report = rewriter.rewrite(str(tmp_path / "a.txt"), str(tmp_path / "b.txt"))
        assert report.success
        assert report.total_scanned_files == 0

    def test_deduplicates_after_rewrite(self, rewriter, ctx, novel):
        """Verify two references collapsing onto one target are stored once."""
        settings = os.path.join(novel, "settings")
        assert ctx.mutators.set_references(
            settings, "places.md", ["contents/chapter1.txt", "contents/chapter2.txt"],
        )
        rewriter.rewrite("contents/chapter1.txt", "contents/chapter2.txt")
        assert ctx.store.load(settings).get("places.md").references == ["contents/chapter2.txt"]

    def test_nested_project_untouched(self, rewriter, ctx, nested, read_meta):
        """Verify a project nested inside this one keeps its own references."""
        sidecar_before = read_meta(nested)
        report = rewriter.rewrite("contents/chapter1.txt", "contents/opening.txt")

        assert report.success
        assert not any(path.startswith(nested) for path in report.updated_files)
        assert read_meta(nested) == sidecar_before
        with open(os.path.join(nested, "notes.md"), encoding="utf-8") as fh:
            assert fh.read() == "See [c](contents/chapter1.txt).\n"

    def test_moved_file_keeps_relative_links(self, rewriter, ctx, novel):
        """Verify ./ and ../ links inside a moved file still reach their targets."""
        archive = os.path.join(novel, "archive")
        os.mkdir(archive)
        with open(os.path.join(archive, "world.md"), "w", encoding="utf-8") as fh:
            fh.write("[hero](./hero.md) [start](../contents/chapter1.txt) [self](./world.md)\n")
        with open(os.path.join(archive, ".dialogoi-meta.yaml"), "w", encoding="utf-8") as fh:
            yaml.safe_dump({"files": [{
                "name": "world.md",
                "type": "setting",
                "hash": "",
                "tags": [],
                "references": ["./hero.md", "contents/chapter1.txt"],
            }]}, fh, sort_keys=False)

        report = rewriter.rewrite("settings/world.md", "archive/world.md")

        assert report.success
        with open(os.path.join(archive, "world.md"), encoding="utf-8") as fh:
            assert fh.read() == (
                "[hero](settings/hero.md) [start](../contents/chapter1.txt) [self](./world.md)\n"
            )
        assert ctx.store.load(archive).get("world.md").references == [
            "settings/hero.md", "contents/chapter1.txt",
        ]


class TestPartialFailure:
    """Per-file failures during a rewrite."""

    def test_undecodable_text_file(self, rewriter, ctx, novel):
        """Verify an undecodable file is reported and the rest still rewritten."""
        bad = os.path.join(novel, "contents", "garbled.txt")
        with open(bad, "wb") as fh:
            fh.write(b"\xff\xfe\xfa")

        report = rewriter.rewrite("contents/chapter1.txt", "contents/opening.txt")

        assert not report.success
        assert [f["path"] for f in report.failed_files] == [bad]
        assert report.failed_files[0]["error"]
        assert os.path.join(novel, "settings", "world.md") in report.updated_files
        data = report.to_dict()
        assert data["failedFiles"] == report.failed_files
        assert data["totalScannedFiles"] == report.total_scanned_files

    def test_invalid_sidecar(self, rewriter, ctx, novel):
        """Verify an invalid sidecar is reported as failed."""
        meta_path = os.path.join(novel, "contents", ".dialogoi-meta.yaml")
        with open(meta_path, "w", encoding="utf-8") as fh:
            fh.write("files: 3\n")

        report = rewriter.rewrite("settings/world.md", "settings/earth.md")

        assert [f["path"] for f in report.failed_files] == [meta_path]
        assert os.path.join(novel, "contents", "chapter2.txt") in report.updated_files
