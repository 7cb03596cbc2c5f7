"""Archetype feature classification and base-association matching.

Turns raw feature documents (name + free-text/HTML description) into typed
ArchetypeFeature records:
- Level extraction from "Level: N" markers
- "replaces X." / "modifies X." target extraction
- Name normalization (exact and tier-stripped) for matching
- Concurrent uuid -> name resolution for the base progression
- Override merging from the archetype database fixes
"""

import asyncio
import re
from dataclasses import dataclass

import structlog
from bs4 import BeautifulSoup

from shared_types import FeatureSourceKind, FeatureType

from .models import Archetype, ArchetypeDoc, ArchetypeFeature, Association, FeatureDoc

logger = structlog.get_logger()

FEATURE_UUID_PREFIX = "Compendium.pf1e-archetypes.pf-arch-features.Item"

LEVEL_RE = re.compile(r"Level\s*:\s*(\d+)", re.IGNORECASE)
REPLACES_RE = re.compile(r"replaces?\s+(.+?)\.", re.IGNORECASE)
MODIFIES_RE = re.compile(r"modif(?:y|ies|ying)\s+(.+?)\.", re.IGNORECASE)
TIER_SUFFIX_RE = re.compile(r"\s+(?:\d+|i{1,3}|iv|vi{0,3}|ix|x)$")
PARENTHETICAL_RE = re.compile(r"\s*\(.*?\)\s*")


@dataclass
class Classification:
    type: FeatureType
    target: str | None
    level: int | None


def html_to_text(description: str | None) -> str:
    """Flatten an HTML description into single-spaced plain text."""
    if not description:
        return ""
    text = BeautifulSoup(description, "html.parser").get_text(" ")
    return " ".join(text.split())


def parse_level(description: str | None) -> int | None:
    match = LEVEL_RE.search(html_to_text(description))
    return int(match.group(1)) if match else None


def parse_replaces(description: str | None) -> str | None:
    match = REPLACES_RE.search(html_to_text(description))
    return match.group(1).strip() if match else None


def parse_modifies(description: str | None) -> str | None:
    match = MODIFIES_RE.search(html_to_text(description))
    return match.group(1).strip() if match else None


def classify(description: str | None) -> Classification:
    """Classify a feature description as replacement, modification, additive or unknown."""
    level = parse_level(description)

    replaces = parse_replaces(description)
    if replaces:
        return Classification(FeatureType.REPLACEMENT, replaces, level)

    modifies = parse_modifies(description)
    if modifies:
        return Classification(FeatureType.MODIFICATION, modifies, level)

    if level is not None:
        return Classification(FeatureType.ADDITIVE, None, level)

    return Classification(FeatureType.UNKNOWN, None, level)


def normalize_name(name: str | None) -> str:
    if not name:
        return ""
    return " ".join(name.lower().split())


def normalize_tier(name: str | None) -> str:
    """Normalize, then drop parentheticals and a trailing tier numeral.

    "Weapon Training 2 (see below)" -> "weapon training"
    """
    return TIER_SUFFIX_RE.sub("", normalize_name(PARENTHETICAL_RE.sub(" ", name or ""))).strip()


def slugify(name: str) -> str:
    slug = re.sub(r"['‘’]", "", name.lower())
    slug = re.sub(r"[^a-z0-9]+", "-", slug)
    return slug.strip("-")


def match_target(target: str | None, associations: list[Association]) -> Association | None:
    """Find the base association a parsed target refers to.

    Exact normalized equality wins; otherwise falls back to tier-stripped
    containment in either direction.
    """
    if not target or not associations:
        return None

    wanted = normalize_name(target)
    if not wanted:
        return None

    for assoc in associations:
        if normalize_name(assoc.resolved_name) == wanted:
            return assoc

    wanted_family = normalize_tier(target)
    if not wanted_family:
        return None
    for assoc in associations:
        family = normalize_tier(assoc.resolved_name)
        if not family:
            continue
        if wanted_family in family or family in wanted_family:
            return assoc

    return None


async def _resolve_name(uuid: str, resolver) -> str | None:
    try:
        doc = await resolver.resolve(uuid)
    except Exception as e:
        logger.warning("uuid_resolve_failed", uuid=uuid, error=str(e))
        return None
    if not doc:
        return None
    return doc.get("name")


async def resolve_associations(associations: list, resolver) -> list[Association]:
    """Attach resolved names to every base association, resolving concurrently."""
    if not associations:
        return []
    assocs = [a if isinstance(a, Association) else Association.from_dict(a) for a in associations]
    names = await asyncio.gather(*(_resolve_name(a.uuid, resolver) for a in assocs))
    return [
        Association(uuid=a.uuid, level=a.level, resolved_name=name)
        for a, name in zip(assocs, names)
    ]


def feature_uuid(doc: FeatureDoc) -> str:
    return doc.uuid or f"{FEATURE_UUID_PREFIX}.{doc.id}"


def _needs_user_input(ftype: FeatureType, matched: Association | None) -> bool:
    if ftype == FeatureType.UNKNOWN:
        return True
    return ftype in (FeatureType.REPLACEMENT, FeatureType.MODIFICATION) and matched is None


def _feature_from_fix(doc: FeatureDoc, fix: dict, resolved: list[Association]) -> ArchetypeFeature:
    target = fix.get("replaces")
    ftype = FeatureType(fix.get("type") or (FeatureType.REPLACEMENT if target else FeatureType.ADDITIVE))
    matched = match_target(target, resolved) if target else None
    return ArchetypeFeature(
        name=doc.name,
        level=fix.get("level"),
        type=ftype,
        uuid=feature_uuid(doc),
        target=target,
        matched_association=matched,
        needs_user_input=_needs_user_input(ftype, matched),
        source=FeatureSourceKind.JE_FIX,
        description=fix.get("description") or doc.description,
    )


async def parse_archetype(
    archetype_doc: ArchetypeDoc,
    feature_docs: list[FeatureDoc],
    base_associations: list,
    resolver,
    db=None,
) -> Archetype:
    """Classify every feature of an archetype against a class's base progression.

    Args:
        archetype_doc: The archetype's name and optional class restriction.
        feature_docs: Raw feature documents belonging to the archetype.
        base_associations: The class's base association list (dicts or Associations).
        resolver: A NameResolver (``async resolve(uuid) -> {"name": ...} | None``).
        db: Optional JournalDB whose entry for this archetype overrides parsing.
    """
    slug = slugify(archetype_doc.name)
    fix = await db.get_archetype(slug) if db is not None else None
    fix_features = (fix or {}).get("features") or {}
    if not isinstance(fix_features, dict):
        logger.warning("archetype_fix_features_ignored", slug=slug)
        fix_features = {}

    resolved = await resolve_associations(base_associations, resolver)

    features = []
    for doc in feature_docs:
        override = fix_features.get(slugify(doc.name))
        if isinstance(override, dict) and override:
            features.append(_feature_from_fix(doc, override, resolved))
            continue

        result = classify(doc.description)
        matched = match_target(result.target, resolved) if result.target else None
        features.append(
            ArchetypeFeature(
                name=doc.name,
                level=result.level,
                type=result.type,
                uuid=feature_uuid(doc),
                target=result.target,
                matched_association=matched,
                needs_user_input=_needs_user_input(result.type, matched),
                description=doc.description,
            )
        )

    unresolved = [f.name for f in features if f.needs_user_input]
    if unresolved:
        logger.info("archetype_needs_user_input", slug=slug, features=unresolved)

    return Archetype(
        name=archetype_doc.name,
        slug=slug,
        class_name=archetype_doc.class_name or (fix or {}).get("class") or None,
        features=features,
    )
