"""
Tests for manuscript_engine/mutators.py -- attribute setters.

Validates:
    - Tag add/remove/set with uniqueness
    - Manual references normalized to project-relative paths
    - Removing absent values succeeds without writing
    - Character, foreshadowing and review summary records
    - Glossary flag and hash refresh
    - NotFound and subdirectory rejection
"""

import os

import pytest

from manuscript_engine.utils import file_hash


@pytest.fixture
def contents(novel):
    return os.path.join(novel, "contents")


@pytest.fixture
def settings(novel):
    return os.path.join(novel, "settings")


def _bytes(path):
    with open(path, "rb") as fh:
        return fh.read()


def _entry(ctx, directory, name):
    return ctx.store.load(directory).get(name)


class TestTags:
    """Tests for add_tag, remove_tag and set_tags."""

    def test_add_tag(self, ctx, contents):
        """Verify a new tag is appended."""
        result = ctx.mutators.add_tag(contents, "chapter1.txt", "revised")
        assert result.success
        assert _entry(ctx, contents, "chapter1.txt").tags == ["draft", "revised"]

    def test_add_duplicate_tag(self, ctx, contents):
        """Verify adding an existing tag keeps the list unique and writes nothing."""
        meta_path = ctx.store.meta_path(contents)
        before = _bytes(meta_path)
        result = ctx.mutators.add_tag(contents, "chapter1.txt", "draft")
        assert result.success
        assert _bytes(meta_path) == before

    def test_add_empty_tag(self, ctx, contents):
        """Verify an empty tag is a validation failure."""
        assert ctx.mutators.add_tag(contents, "chapter1.txt", "  ").error == "ValidationError"

    def test_remove_tag(self, ctx, contents):
        """Verify removing the last tag leaves an empty list."""
        assert ctx.mutators.remove_tag(contents, "chapter1.txt", "draft")
        assert _entry(ctx, contents, "chapter1.txt").tags == []
        stored = ctx.store.load(contents).get("chapter1.txt").to_storage()
        assert stored["tags"] == []

    def test_remove_absent_tag(self, ctx, contents):
        """Verify removing a missing tag succeeds without writing."""
        meta_path = ctx.store.meta_path(contents)
        before = _bytes(meta_path)
        result = ctx.mutators.remove_tag(contents, "chapter2.txt", "nope")
        assert result.success
        assert _bytes(meta_path) == before

    def test_set_tags(self, ctx, contents):
        """Verify set_tags replaces the list and drops repeats."""
        assert ctx.mutators.set_tags(contents, "chapter1.txt", ["a", "b", "a"])
        assert _entry(ctx, contents, "chapter1.txt").tags == ["a", "b"]

    def test_set_tags_rejects_non_strings(self, ctx, contents):
        """Verify set_tags validates every tag."""
        assert ctx.mutators.set_tags(contents, "chapter1.txt", ["a", 3]).error == "ValidationError"
        assert ctx.mutators.set_tags(contents, "chapter1.txt", ["a", ""]).error == "ValidationError"
        assert _entry(ctx, contents, "chapter1.txt").tags == ["draft"]

    def test_unknown_entry(self, ctx, contents):
        """Verify NotFound for an unknown entry."""
        assert ctx.mutators.add_tag(contents, "ghost.txt", "x").error == "NotFound"

    def test_unmanaged_directory(self, ctx, tmp_path):
        """Verify NotFound for an unmanaged directory."""
        assert ctx.mutators.add_tag(tmp_path, "a.txt", "x").error == "NotFound"

    def test_subdirectory_rejected(self, ctx, novel):
        """Verify subdirectory entries carry no tags."""
        assert ctx.mutators.add_tag(novel, "contents", "x").error == "ValidationError"


class TestReferences:
    """Tests for add_reference, remove_reference and set_references."""

    def test_add_relative_reference(self, ctx, contents):
        """Verify a ../ reference is stored project-root relative."""
        result = ctx.mutators.add_reference(contents, "chapter2.txt", "../settings/hero.md")
        assert result
        assert _entry(ctx, contents, "chapter2.txt").references == ["settings/hero.md"]

    def test_add_reference_updates_graph(self, ctx, contents):
        """Verify the graph sees a newly added reference."""
        assert ctx.graph.incoming("settings/hero.md") == []
        ctx.mutators.add_reference(contents, "chapter2.txt", "settings/hero.md")
        assert ctx.graph.incoming("settings/hero.md") == [
            {"source": "contents/chapter2.txt", "kind": "manual"},
        ]

    def test_add_duplicate_reference(self, ctx, contents):
        """Verify equivalent spellings of one target are stored once."""
        ctx.mutators.add_reference(contents, "chapter1.txt", "../settings/world.md")
        assert _entry(ctx, contents, "chapter1.txt").references == ["settings/world.md"]

    def test_add_external_reference(self, ctx, contents):
        """Verify external links are not stored as references."""
        result = ctx.mutators.add_reference(contents, "chapter1.txt", "https://example.com")
        assert result.error == "ValidationError"

    def test_remove_reference(self, ctx, contents):
        """Verify removing the last reference leaves an empty list."""
        assert ctx.mutators.remove_reference(contents, "chapter1.txt", "settings/world.md")
        assert _entry(ctx, contents, "chapter1.txt").references == []

    def test_remove_reference_by_relative_spelling(self, ctx, contents):
        """Verify removal matches on the normalized target."""
        assert ctx.mutators.remove_reference(contents, "chapter1.txt", "../settings/world.md")
        assert _entry(ctx, contents, "chapter1.txt").references == []

    def test_remove_absent_reference(self, ctx, contents):
        """Verify removing an absent reference is a successful no-op."""
        meta_path = ctx.store.meta_path(contents)
        before = _bytes(meta_path)
        assert ctx.mutators.remove_reference(contents, "chapter2.txt", "settings/world.md")
        assert _bytes(meta_path) == before

    def test_set_references(self, ctx, settings):
        """Verify set_references normalizes and deduplicates."""
        result = ctx.mutators.set_references(
            settings, "places.md", ["./hero.md", "settings/hero.md", "contents/chapter2.txt"],
        )
        assert result
        assert _entry(ctx, settings, "places.md").references == [
            "settings/hero.md", "contents/chapter2.txt",
        ]


class TestCharacter:
    """Tests for the character record setters."""

    def test_importance_creates_record(self, ctx, settings):
        """Verify a record is created with the heading as display name."""
        assert ctx.mutators.set_character_importance(settings, "world.md", "background")
        character = _entry(ctx, settings, "world.md").character
        assert character.importance == "background"
        assert character.multiple_characters is False
        assert character.display_name == "World"

    def test_importance_updates_existing(self, ctx, settings):
        """Verify only importance changes on an existing record."""
        assert ctx.mutators.set_character_importance(settings, "hero.md", "sub")
        character = _entry(ctx, settings, "hero.md").character
        assert character.importance == "sub"
        assert character.display_name == "Captain Mara Voss"

    def test_bad_importance(self, ctx, settings):
        """Verify unknown importance levels are rejected."""
        assert ctx.mutators.set_character_importance(settings, "hero.md", "hero").error == "ValidationError"

    def test_multiple_characters(self, ctx, settings):
        """Verify the multiple flag keeps the existing importance."""
        assert ctx.mutators.set_multiple_characters(settings, "hero.md", True)
        character = _entry(ctx, settings, "hero.md").character
        assert character.multiple_characters is True
        assert character.importance == "main"

    def test_multiple_characters_new_record(self, ctx, settings):
        """Verify a new record from the multiple flag defaults to sub."""
        assert ctx.mutators.set_multiple_characters(settings, "places.md", True)
        assert _entry(ctx, settings, "places.md").character.importance == "sub"

    def test_remove_character(self, ctx, settings):
        """Verify removal, then removal again as a no-op."""
        assert ctx.mutators.remove_character(settings, "hero.md")
        assert _entry(ctx, settings, "hero.md").character is None
        assert ctx.mutators.remove_character(settings, "hero.md").success
        assert "character" not in _entry(ctx, settings, "hero.md").to_storage()


class TestForeshadowing:
    """Tests for the foreshadowing setters."""

    def test_add_plant(self, ctx, settings):
        """Verify plants are appended in order."""
        assert ctx.mutators.add_plant(settings, "places.md", "contents/chapter2.txt", "lamp lit")
        plants = _entry(ctx, settings, "places.md").foreshadowing.plants
        assert [(p.location, p.comment) for p in plants] == [
            ("contents/chapter1.txt", "dark lamp"),
            ("contents/chapter2.txt", "lamp lit"),
        ]

    def test_add_plant_creates_record(self, ctx, settings):
        """Verify a record is created on the first plant."""
        assert ctx.mutators.add_plant(settings, "world.md", "contents/chapter1.txt")
        info = _entry(ctx, settings, "world.md").foreshadowing
        assert len(info.plants) == 1
        assert info.payoff.location == ""

    def test_update_plant(self, ctx, settings):
        """Verify a plant is replaced by index."""
        assert ctx.mutators.update_plant(settings, "places.md", 0, "contents/chapter2.txt", "moved")
        plant = _entry(ctx, settings, "places.md").foreshadowing.plants[0]
        assert plant.location == "contents/chapter2.txt"
        assert plant.comment == "moved"

    @pytest.mark.parametrize("index", [1, -1, 10])
    def test_plant_index_out_of_range(self, ctx, settings, index):
        """Verify update and remove reject bad indexes."""
        assert ctx.mutators.update_plant(settings, "places.md", index, "x").error == "InvalidIndex"
        assert ctx.mutators.remove_plant(settings, "places.md", index).error == "InvalidIndex"
        assert len(_entry(ctx, settings, "places.md").foreshadowing.plants) == 1

    def test_remove_plant(self, ctx, settings):
        """Verify removing the only plant leaves an empty list."""
        assert ctx.mutators.remove_plant(settings, "places.md", 0)
        assert _entry(ctx, settings, "places.md").foreshadowing.plants == []

    def test_payoff(self, ctx, settings):
        """Verify set_payoff and remove_payoff."""
        assert ctx.mutators.set_payoff(settings, "places.md", "contents/chapter2.txt", "revealed")
        payoff = _entry(ctx, settings, "places.md").foreshadowing.payoff
        assert (payoff.location, payoff.comment) == ("contents/chapter2.txt", "revealed")

        assert ctx.mutators.remove_payoff(settings, "places.md")
        payoff = _entry(ctx, settings, "places.md").foreshadowing.payoff
        assert (payoff.location, payoff.comment) == ("", "")

    def test_remove_foreshadowing(self, ctx, settings):
        """Verify the whole record is dropped."""
        assert ctx.mutators.remove_foreshadowing(settings, "places.md")
        assert _entry(ctx, settings, "places.md").foreshadowing is None
        assert ctx.mutators.remove_foreshadowing(settings, "places.md").success


class TestReviewSummary:
    """Tests for update_review_summary."""

    def test_update_counts(self, ctx, settings, read_meta):
        """Verify counts are stored with zero counts other than open dropped."""
        result = ctx.mutators.update_review_summary(
            settings, "world.md", {"open": 0, "in_progress": 1, "resolved": 0, "dismissed": 2},
        )
        assert result
        stored = {f["name"]: f for f in read_meta(settings)["files"]}["world.md"]
        assert stored["review_count"] == {"open": 0, "in_progress": 1, "dismissed": 2}

    def test_all_zero_removes(self, ctx, settings, read_meta):
        """Verify all-zero counts remove the summary."""
        assert ctx.mutators.update_review_summary(
            settings, "places.md", {"open": 0, "in_progress": 0, "resolved": 0, "dismissed": 0},
        )
        stored = {f["name"]: f for f in read_meta(settings)["files"]}["places.md"]
        assert "review_count" not in stored

    def test_none_removes_idempotently(self, ctx, settings):
        """Verify removing an absent summary succeeds."""
        assert ctx.mutators.update_review_summary(settings, "places.md", None)
        assert ctx.mutators.update_review_summary(settings, "places.md", None).success
        assert _entry(ctx, settings, "places.md").review_count is None

    def test_negative_count(self, ctx, settings):
        """Verify negative counts are rejected."""
        result = ctx.mutators.update_review_summary(settings, "world.md", {"open": -1})
        assert result.error == "ValidationError"


class TestGlossaryAndHash:
    """Tests for set_glossary and refresh_hash."""

    def test_set_glossary(self, ctx, settings, read_meta):
        """Verify the flag is written and cleared."""
        assert ctx.mutators.set_glossary(settings, "world.md", True)
        stored = {f["name"]: f for f in read_meta(settings)["files"]}["world.md"]
        assert stored["glossary"] is True

        assert ctx.mutators.set_glossary(settings, "world.md", False)
        stored = {f["name"]: f for f in read_meta(settings)["files"]}["world.md"]
        assert "glossary" not in stored

    def test_glossary_on_content(self, ctx, contents):
        """Verify content entries cannot be glossaries."""
        assert ctx.mutators.set_glossary(contents, "chapter1.txt").error == "ValidationError"

    def test_refresh_hash(self, ctx, contents):
        """Verify the stored hash matches the file after a refresh."""
        path = os.path.join(contents, "chapter2.txt")
        with open(path, "a", encoding="utf-8") as fh:
            fh.write("More text.\n")
        assert ctx.mutators.refresh_hash(contents, "chapter2.txt")
        assert _entry(ctx, contents, "chapter2.txt").hash == file_hash(path)
