"""Shared test fixtures for the archetype manager."""

import sys
from pathlib import Path

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from applicator.host import (  # noqa: E402
    MappingResolver,
    MemoryClassItem,
    MemorySubject,
    RecordingChatLog,
    RecordingNotifier,
    StaticPermissions,
)
from archetypes.models import (  # noqa: E402
    Archetype,
    ArchetypeDoc,
    ArchetypeFeature,
    Association,
    FeatureDoc,
)
from shared_types import FeatureType  # noqa: E402

BASE = "Compendium.pf1.class-abilities"
ARCH = "Compendium.pf1e-archetypes.pf-arch-features.Item"

FIGHTER_NAMES = {
    f"{BASE}.BonusFeat1": "Bonus Feat",
    f"{BASE}.Bravery": "Bravery",
    f"{BASE}.ArmorTraining1": "Armor Training 1",
    f"{BASE}.WeaponTraining1": "Weapon Training 1",
    f"{BASE}.WeaponTraining2": "Weapon Training 2",
    f"{BASE}.WeaponMastery": "Weapon Mastery",
}


def feature(name, ftype, level, uuid, target=None, matched=None):
    """Build an ArchetypeFeature the way the parser would."""
    needs_input = ftype == FeatureType.UNKNOWN or (
        ftype in (FeatureType.REPLACEMENT, FeatureType.MODIFICATION) and matched is None
    )
    return ArchetypeFeature(
        name=name,
        level=level,
        type=ftype,
        uuid=uuid,
        target=target,
        matched_association=matched,
        needs_user_input=needs_input,
    )


@pytest.fixture
def fighter_base():
    """Raw fighter association list as stored on a class item."""
    return [
        {"uuid": f"{BASE}.BonusFeat1", "level": 1},
        {"uuid": f"{BASE}.Bravery", "level": 2},
        {"uuid": f"{BASE}.ArmorTraining1", "level": 3},
        {"uuid": f"{BASE}.WeaponTraining1", "level": 5},
        {"uuid": f"{BASE}.WeaponTraining2", "level": 9},
        {"uuid": f"{BASE}.WeaponMastery", "level": 20},
    ]


@pytest.fixture
def resolved_base(fighter_base):
    return [
        Association(uuid=a["uuid"], level=a["level"], resolved_name=FIGHTER_NAMES[a["uuid"]])
        for a in fighter_base
    ]


@pytest.fixture
def resolver():
    return MappingResolver(FIGHTER_NAMES)


@pytest.fixture
def thf_docs():
    """Two-Handed Fighter feature documents, as the content loader supplies them."""
    return ArchetypeDoc(name="Two-Handed Fighter", class_name="fighter"), [
        FeatureDoc(
            name="Shattering Strike",
            description="<p><strong>Level</strong>: 2</p><p>This replaces Bravery.</p>",
            id="shattering-strike",
            uuid=f"{ARCH}.shattering-strike",
        ),
        FeatureDoc(
            name="Weapon Training (THF)",
            description="<p><strong>Level</strong>: 5</p><p>This modifies Weapon Training 1.</p>",
            id="thf-weapon-training",
            uuid=f"{ARCH}.thf-weapon-training",
        ),
        FeatureDoc(
            name="Overhand Chop",
            description="<p><strong>Level</strong>: 3</p><p>Bonus damage on single attacks.</p>",
            id="overhand-chop",
        ),
    ]


@pytest.fixture
def thf(resolved_base):
    """Parsed Two-Handed Fighter: replaces Bravery, modifies WT1, adds Overhand Chop."""
    return Archetype(
        name="Two-Handed Fighter",
        slug="two-handed-fighter",
        class_name="fighter",
        features=[
            feature(
                "Shattering Strike", FeatureType.REPLACEMENT, 2, f"{ARCH}.shattering-strike",
                target="Bravery", matched=resolved_base[1],
            ),
            feature(
                "Weapon Training (THF)", FeatureType.MODIFICATION, 5, f"{ARCH}.thf-weapon-training",
                target="Weapon Training 1", matched=resolved_base[3],
            ),
            feature("Overhand Chop", FeatureType.ADDITIVE, 3, f"{ARCH}.overhand-chop"),
        ],
    )


@pytest.fixture
def armor_master(resolved_base):
    """Archetype touching Armor Training only."""
    return Archetype(
        name="Armor Master",
        slug="armor-master",
        class_name="fighter",
        features=[
            feature(
                "Deflective Shield", FeatureType.REPLACEMENT, 3, f"{ARCH}.deflective-shield",
                target="Armor Training 1", matched=resolved_base[2],
            ),
        ],
    )


@pytest.fixture
def fighter_item(fighter_base):
    return MemoryClassItem(id="cls-fighter", name="Fighter", tag="fighter", associations=fighter_base)


@pytest.fixture
def subject(fighter_item):
    return MemorySubject(id="actor-1", name="Valeros", owner="player1", classes=[fighter_item])


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def chat_log():
    return RecordingChatLog()


@pytest.fixture
def gm():
    return StaticPermissions(privileged=True)
