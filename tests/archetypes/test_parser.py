"""Tests for feature classification, name matching and archetype parsing."""

import json

import pytest

from archetypes.models import ArchetypeDoc, Association, FeatureDoc
from archetypes.parser import (
    FEATURE_UUID_PREFIX,
    classify,
    html_to_text,
    match_target,
    normalize_name,
    normalize_tier,
    parse_archetype,
    parse_level,
    resolve_associations,
    slugify,
)
from content.journal_db import JournalDB
from applicator.host import MappingResolver, StaticPermissions
from shared_types import FeatureSourceKind, FeatureType


class TestClassify:
    def test_replacement(self):
        result = classify("<p><strong>Level</strong>: 2</p><p>This replaces Bravery.</p>")
        assert result.type == FeatureType.REPLACEMENT
        assert result.target == "Bravery"
        assert result.level == 2

    def test_replacement_singular_verb(self):
        result = classify("Level: 1. This ability replace armor proficiency.")
        assert result.type == FeatureType.REPLACEMENT
        assert result.target == "armor proficiency"

    def test_modification(self):
        result = classify("Level: 5. This modifies Weapon Training 1.")
        assert result.type == FeatureType.MODIFICATION
        assert result.target == "Weapon Training 1"
        assert result.level == 5

    def test_replaces_wins_over_modifies(self):
        result = classify("Level: 3. This replaces Bravery. It also modifies Armor Training.")
        assert result.type == FeatureType.REPLACEMENT
        assert result.target == "Bravery"

    def test_additive_needs_level(self):
        result = classify("Level: 3. Bonus damage on single attacks.")
        assert result.type == FeatureType.ADDITIVE
        assert result.target is None
        assert result.level == 3

    def test_unknown_without_markers(self):
        result = classify("A fighter gains a mysterious aura.")
        assert result.type == FeatureType.UNKNOWN
        assert result.level is None

    def test_empty_description(self):
        assert classify("").type == FeatureType.UNKNOWN
        assert classify(None).type == FeatureType.UNKNOWN

    def test_replaced_past_tense_is_not_a_replacement(self):
        result = classify("Level: 4. This was replaced by nothing")
        assert result.type == FeatureType.ADDITIVE

    def test_level_is_case_insensitive(self):
        assert parse_level("level : 12") == 12
        assert parse_level("no level here") is None


class TestTextHelpers:
    def test_html_to_text_collapses_whitespace(self):
        assert html_to_text("<p>Level:\n  2</p>\n<p>Text</p>") == "Level: 2 Text"

    def test_html_to_text_empty(self):
        assert html_to_text("") == ""

    def test_normalize_name(self):
        assert normalize_name("  Weapon   Training 1 ") == "weapon training 1"
        assert normalize_name(None) == ""

    @pytest.mark.parametrize(
        "name,expected",
        [
            ("Weapon Training 2", "weapon training"),
            ("Armor Training III", "armor training"),
            ("Bravery", "bravery"),
            ("Bonus Feat", "bonus feat"),
            ("Armor Training (see below)", "armor training"),
            ("Weapon Training 2 (Ex)", "weapon training"),
            ("(see text)", ""),
        ],
    )
    def test_normalize_tier(self, name, expected):
        assert normalize_tier(name) == expected

    def test_slugify(self):
        assert slugify("Two-Handed Fighter") == "two-handed-fighter"
        assert slugify("Weapon Master's Handbook") == "weapon-masters-handbook"


class TestMatchTarget:
    def test_exact_match(self, resolved_base):
        assert match_target("bravery", resolved_base).uuid.endswith("Bravery")

    def test_exact_match_preferred_over_family(self, resolved_base):
        match = match_target("Weapon Training 2", resolved_base)
        assert match.uuid.endswith("WeaponTraining2")

    def test_tier_family_fallback(self, resolved_base):
        match = match_target("Armor Training 2", resolved_base)
        assert match.uuid.endswith("ArmorTraining1")

    def test_untiered_target_matches_first_tier(self, resolved_base):
        match = match_target("Weapon Training", resolved_base)
        assert match.uuid.endswith("WeaponTraining1")

    def test_parenthetical_target(self, resolved_base):
        match = match_target("armor training (see below)", resolved_base)
        assert match.uuid.endswith("ArmorTraining1")
        assert match_target("(see text)", resolved_base) is None

    def test_no_match(self, resolved_base):
        assert match_target("Spellcasting", resolved_base) is None

    def test_empty_inputs(self, resolved_base):
        assert match_target("", resolved_base) is None
        assert match_target("Bravery", []) is None

    def test_unresolved_names_are_skipped(self):
        assocs = [Association(uuid="a", level=1), Association(uuid="b", level=2, resolved_name="Bravery")]
        assert match_target("Bravery", assocs).uuid == "b"


class TestResolveAssociations:
    @pytest.mark.asyncio
    async def test_resolves_names(self, fighter_base, resolver):
        resolved = await resolve_associations(fighter_base, resolver)
        assert [a.resolved_name for a in resolved][:2] == ["Bonus Feat", "Bravery"]
        assert resolved[5].level == 20

    @pytest.mark.asyncio
    async def test_resolver_failure_leaves_name_empty(self, fighter_base):
        class BrokenResolver:
            async def resolve(self, uuid):
                if uuid.endswith("Bravery"):
                    raise RuntimeError("compendium offline")
                return {"name": "Something"}

        resolved = await resolve_associations(fighter_base, BrokenResolver())
        assert resolved[1].resolved_name is None
        assert resolved[0].resolved_name == "Something"

    @pytest.mark.asyncio
    async def test_empty(self, resolver):
        assert await resolve_associations([], resolver) == []


class TestParseArchetype:
    @pytest.mark.asyncio
    async def test_two_handed_fighter(self, thf_docs, fighter_base, resolver):
        doc, features = thf_docs
        archetype = await parse_archetype(doc, features, fighter_base, resolver)

        assert archetype.slug == "two-handed-fighter"
        assert archetype.class_name == "fighter"
        strike, training, chop = archetype.features

        assert strike.type == FeatureType.REPLACEMENT
        assert strike.matched_association.uuid.endswith("Bravery")
        assert not strike.needs_user_input

        assert training.type == FeatureType.MODIFICATION
        assert training.matched_association.uuid.endswith("WeaponTraining1")

        assert chop.type == FeatureType.ADDITIVE
        assert chop.uuid == f"{FEATURE_UUID_PREFIX}.overhand-chop"
        assert chop.source == FeatureSourceKind.AUTO_PARSE

    @pytest.mark.asyncio
    async def test_unmatched_target_needs_user_input(self, fighter_base, resolver):
        docs = [FeatureDoc(name="Arcane Pool", description="Level: 1. This replaces Spellbook.", id="pool")]
        archetype = await parse_archetype(ArchetypeDoc(name="Odd"), docs, fighter_base, resolver)
        feature = archetype.features[0]
        assert feature.type == FeatureType.REPLACEMENT
        assert feature.matched_association is None
        assert feature.needs_user_input

    @pytest.mark.asyncio
    async def test_unknown_needs_user_input(self, fighter_base, resolver):
        docs = [FeatureDoc(name="Flavor", description="Just some lore.", id="flavor")]
        archetype = await parse_archetype(ArchetypeDoc(name="Odd"), docs, fighter_base, resolver)
        assert archetype.features[0].needs_user_input

    @pytest.mark.asyncio
    async def test_database_fix_overrides_parsing(self, tmp_path, thf_docs, fighter_base, resolver):
        db = JournalDB(tmp_path / "db", permissions=StaticPermissions(privileged=True))
        await db.set_archetype(
            "fixes",
            "two-handed-fighter",
            {
                "class": "fighter",
                "features": {"overhand-chop": {"level": 4, "replaces": "Bravery", "description": "fixed"}},
            },
        )
        doc, features = thf_docs
        archetype = await parse_archetype(doc, features, fighter_base, resolver, db)
        chop = archetype.features[2]

        assert chop.source == FeatureSourceKind.JE_FIX
        assert chop.type == FeatureType.REPLACEMENT
        assert chop.level == 4
        assert chop.matched_association.uuid.endswith("Bravery")
        assert chop.description == "fixed"
        assert archetype.features[0].source == FeatureSourceKind.AUTO_PARSE

    @pytest.mark.asyncio
    async def test_class_falls_back_to_database_entry(self, tmp_path, fighter_base):
        db = JournalDB(tmp_path / "db")
        await db.set_archetype("custom", "brute", {"class": "barbarian", "features": {}})
        archetype = await parse_archetype(
            ArchetypeDoc(name="Brute"), [], fighter_base, MappingResolver(), db
        )
        assert archetype.class_name == "barbarian"
        assert archetype.features == []

    @pytest.mark.asyncio
    async def test_malformed_database_entries_fall_back_to_parsing(self, tmp_path, thf_docs, fighter_base, resolver):
        db = JournalDB(tmp_path / "db", permissions=StaticPermissions(privileged=True))
        await db.ensure_database()
        (tmp_path / "db" / "fixes.json").write_text(json.dumps({"two-handed-fighter": "oops"}))
        await db.set_archetype("custom", "two-handed-fighter", {"features": {"overhand-chop": "level 4"}})
        doc, features = thf_docs

        archetype = await parse_archetype(doc, features, fighter_base, resolver, db)
        assert [f.source for f in archetype.features] == [FeatureSourceKind.AUTO_PARSE] * 3
        assert archetype.features[2].level == 3

        await db.set_archetype("custom", "two-handed-fighter", {"features": ["overhand-chop"]})
        archetype = await parse_archetype(doc, features, fighter_base, resolver, db)
        assert archetype.features[1].type == FeatureType.MODIFICATION
