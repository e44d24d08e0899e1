from __future__ import annotations

import random

import pytest

from mint_engine.errors import ValidationError
from mint_engine.runs.events import EventWriter
from mint_engine.traits.definitions import BREED_PREFERENCES, breed_names
from mint_engine.traits.engine import (
    ScoredTrait,
    TraitEngine,
    rarity_tier,
    score_traits,
    tier_bounds,
    validate_breed,
)


def _common_set() -> list[ScoredTrait]:
    return [
        ScoredTrait("Breed", "Tabby", "Common"),
        ScoredTrait("Weapon", "Katana", "Common"),
        ScoredTrait("Stance", "Attack", "Common"),
        ScoredTrait("Element", "Fire", "Common"),
        ScoredTrait("Rank", "Novice", "Common"),
        ScoredTrait("Accessory", "Headband", "Common"),
    ]


def test_synergy_bonuses_are_additive() -> None:
    breakdown = score_traits(_common_set())
    assert breakdown.base == pytest.approx(25.0)
    assert breakdown.synergy == 15
    assert set(breakdown.synergies) == {"Katana+Attack", "Fire+Headband"}
    assert breakdown.special == 0
    assert breakdown.total == pytest.approx(40.0)
    assert rarity_tier(breakdown.total) == "Common"


def test_synergy_pair_counts_once() -> None:
    traits = _common_set()
    breakdown = score_traits(traits + [ScoredTrait("Weapon", "Katana", "Common")])
    assert breakdown.synergies.count("Katana+Attack") == 1


def test_mythic_trait_adds_bonus_and_forces_tier() -> None:
    traits = _common_set() + [ScoredTrait("Blessing", "Nine Lives", "Mythic")]
    breakdown = score_traits(traits)
    assert breakdown.special == 50
    assert rarity_tier(breakdown.total, mythic=True) == "Mythic"


def test_tier_thresholds() -> None:
    assert rarity_tier(100) == "Legendary"
    assert rarity_tier(99.99) == "Epic"
    assert rarity_tier(85) == "Epic"
    assert rarity_tier(70) == "Rare"
    assert rarity_tier(60) == "Uncommon"
    assert rarity_tier(59.9) == "Common"
    assert tier_bounds("Rare") == (70.0, 85.0)
    assert tier_bounds("Legendary") == (100.0, float("inf"))


def test_tiers_stay_within_their_bands_over_many_draws() -> None:
    engine = TraitEngine(random.Random(1234))
    names = breed_names()
    seen_mythic = 0
    for idx in range(10_000):
        assignment = engine.assign_traits(names[idx % len(names)])
        if assignment.tier == "Mythic":
            seen_mythic += 1
            assert assignment.is_mythic
            continue
        assert not assignment.is_mythic
        low, high = tier_bounds(assignment.tier)
        assert low <= assignment.breakdown.total < high
        assert 5 <= len(assignment.attributes) <= 20
    assert seen_mythic < 100


def test_forced_mythic_roll() -> None:
    engine = TraitEngine(random.Random(7), mythic_chance=1.0)
    assignment = engine.assign_traits("Tabby")
    assert assignment.tier == "Mythic"
    assert assignment.special is not None
    assert assignment.breakdown.special == 50
    assert "Cat Gods" in assignment.description


def test_preferred_subsets_are_respected() -> None:
    engine = TraitEngine(random.Random(99), unique_chance=0.0, mythic_chance=0.0)
    preferences = BREED_PREFERENCES["Tabby"]
    for _ in range(200):
        assignment = engine.assign_traits("tabby")
        assert assignment.breed == "Tabby"
        assert assignment.value_of("Weapon") in preferences["Weapon"]
        assert assignment.value_of("Stance") in preferences["Stance"]
        assert assignment.value_of("Element") in preferences["Element"]
        assert assignment.special is None


def test_stats_are_numeric_attributes() -> None:
    assignment = TraitEngine(random.Random(3)).assign_traits("Tabby")
    stats = [attr for attr in assignment.attributes if attr.get("display_type") == "number"]
    assert {attr["trait_type"] for attr in stats} == {"Agility", "Stealth", "Power", "Intelligence"}
    assert all(1 <= attr["value"] <= 10 for attr in stats)


def test_unknown_breed_falls_back_with_event() -> None:
    events = EventWriter(None, "test")
    assignment = TraitEngine(random.Random(5), events=events).assign_traits("Sphynx Prime", token_id=9)
    assert assignment.breed in breed_names()
    assert assignment.requested_breed == "Sphynx Prime"
    fallback = events.recent("breed_fallback")
    assert fallback and fallback[0]["token_id"] == 9


@pytest.mark.parametrize("breed", ["", "   ", "x" * 41, "Tabby<script>", None, 7])
def test_malformed_breeds_are_rejected(breed) -> None:
    with pytest.raises(ValidationError):
        validate_breed(breed)


def test_empty_trait_list_is_rejected() -> None:
    with pytest.raises(ValidationError):
        score_traits([])
