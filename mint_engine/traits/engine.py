"""Weighted trait assignment and rarity scoring."""

from __future__ import annotations

import random
import re
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Sequence

from ..errors import ValidationError
from ..runs.events import EventWriter, emit
from .definitions import (
    BACKGROUND_FLAVOR,
    BACKGROUNDS,
    BREED_PREFERENCES,
    BREED_STAT_BONUS,
    BREEDS,
    CLANS,
    ELEMENT_STAT_BONUS,
    MYTHIC_TRAITS,
    RARITY_POINTS,
    STAT_NAMES,
    SYNERGY_PAIRS,
    TRAIT_CATEGORIES,
    UNIQUE_STAT_BONUS,
    UNIQUE_TRAITS,
    VILLAINS,
    WEAPON_STAT_BONUS,
    BackgroundDef,
    SpecialTraitDef,
    SynergyPair,
    TraitDef,
    find_breed,
)


TIER_THRESHOLDS: tuple[tuple[float, str], ...] = (
    (100.0, "Legendary"),
    (85.0, "Epic"),
    (70.0, "Rare"),
    (60.0, "Uncommon"),
)
TIER_ORDER = ("Common", "Uncommon", "Rare", "Epic", "Legendary", "Mythic")
MYTHIC_BONUS = 50.0
UNIQUE_CHANCE = 1 / 50
MYTHIC_CHANCE = 1 / 1000
ACCESSORY_CHANCE = 0.75
BACKGROUND_AFFINITY_MULTIPLIER = 3
DEFAULT_RARITY_SCORE = 30

_BREED_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9 '\-]*$")
_MAX_BREED_LENGTH = 40


@dataclass(frozen=True)
class ScoredTrait:
    trait_type: str
    value: str
    rarity: str
    keywords: tuple[str, ...] = ()


@dataclass(frozen=True)
class ScoreBreakdown:
    base: float
    synergy: float
    special: float
    synergies: tuple[str, ...] = ()

    @property
    def total(self) -> float:
        return self.base + self.synergy + self.special


@dataclass(frozen=True)
class TraitAssignment:
    breed: str
    attributes: tuple[Mapping[str, Any], ...]
    rarity_score: float
    tier: str
    breakdown: ScoreBreakdown
    description: str
    keywords: tuple[str, ...]
    stats: Mapping[str, int]
    background: BackgroundDef
    special: SpecialTraitDef | None = None
    requested_breed: str | None = None

    def value_of(self, trait_type: str) -> Any:
        for attr in self.attributes:
            if attr["trait_type"] == trait_type:
                return attr["value"]
        return None

    @property
    def is_mythic(self) -> bool:
        return self.special is not None and self.special.rarity == "Mythic"


def rarity_tier(score: float, *, mythic: bool = False) -> str:
    if mythic:
        return "Mythic"
    for threshold, tier in TIER_THRESHOLDS:
        if score >= threshold:
            return tier
    return "Common"


def tier_bounds(tier: str) -> tuple[float, float]:
    """Return the half-open score band [low, high) a non-Mythic tier covers."""
    edges = {name: low for low, name in TIER_THRESHOLDS}
    edges["Common"] = float("-inf")
    ordered = ["Common", "Uncommon", "Rare", "Epic", "Legendary"]
    idx = ordered.index(tier)
    high = edges[ordered[idx + 1]] if idx + 1 < len(ordered) else float("inf")
    return edges[tier], high


def validate_breed(breed: Any) -> str:
    if not isinstance(breed, str):
        raise ValidationError(f"Breed must be a string, got {type(breed).__name__}.")
    cleaned = breed.strip()
    if not cleaned:
        raise ValidationError("Breed must not be empty.")
    if len(cleaned) > _MAX_BREED_LENGTH:
        raise ValidationError(f"Breed is too long ({len(cleaned)} > {_MAX_BREED_LENGTH}).")
    if not _BREED_RE.match(cleaned):
        raise ValidationError(f"Breed contains unsupported characters: {cleaned!r}.")
    return cleaned


def score_traits(
    traits: Sequence[ScoredTrait],
    pairs: Iterable[SynergyPair] = SYNERGY_PAIRS,
) -> ScoreBreakdown:
    if not traits:
        raise ValidationError("Cannot score an empty trait list.")
    count = len(traits)
    base = sum(RARITY_POINTS.get(trait.rarity, RARITY_POINTS["Common"]) / count for trait in traits)
    present = {(trait.trait_type, trait.value) for trait in traits}
    synergy = 0.0
    matched: list[str] = []
    for pair in dict.fromkeys(pairs):
        if (pair.type1, pair.value1) in present and (pair.type2, pair.value2) in present:
            synergy += pair.bonus
            matched.append(f"{pair.value1}+{pair.value2}")
    special = MYTHIC_BONUS if any(trait.rarity == "Mythic" for trait in traits) else 0.0
    return ScoreBreakdown(base=base, synergy=synergy, special=special, synergies=tuple(matched))


class TraitEngine:
    def __init__(
        self,
        rng: random.Random | None = None,
        *,
        events: EventWriter | None = None,
        unique_chance: float = UNIQUE_CHANCE,
        mythic_chance: float = MYTHIC_CHANCE,
    ) -> None:
        self.rng = rng or random.Random()
        self.events = events
        self.unique_chance = unique_chance
        self.mythic_chance = mythic_chance

    def assign_traits(self, breed: str, token_id: int | None = None) -> TraitAssignment:
        requested = validate_breed(breed)
        breed_def = find_breed(requested)
        if breed_def is None:
            breed_def = self._weighted_pick(BREEDS)
            emit(
                self.events,
                "breed_fallback",
                token_id=token_id,
                requested=requested,
                selected=breed_def.value,
            )

        traits: list[ScoredTrait] = [
            ScoredTrait("Breed", breed_def.value, breed_def.rarity, breed_def.keywords)
        ]
        preferences = BREED_PREFERENCES.get(breed_def.value, {})
        for trait_type, pool in TRAIT_CATEGORIES.items():
            if trait_type == "Accessory" and self.rng.random() >= ACCESSORY_CHANCE:
                continue
            picked = self._weighted_pick(_restrict(pool, preferences.get(trait_type)))
            traits.append(ScoredTrait(trait_type, picked.value, picked.rarity, picked.keywords))

        background = self._pick_background(breed_def.value)
        traits.append(ScoredTrait("Background", background.name, background.rarity, background.keywords))

        special = self._roll_special()
        if special is not None:
            traits.append(ScoredTrait(special.trait_type, special.value, special.rarity, special.keywords))

        breakdown = score_traits(traits)
        tier = rarity_tier(breakdown.total, mythic=special is not None and special.rarity == "Mythic")
        stats = self._stats(traits, background, special)
        attributes: list[dict[str, Any]] = [
            {"trait_type": trait.trait_type, "value": trait.value} for trait in traits
        ]
        for name in STAT_NAMES:
            attributes.append({"trait_type": name.capitalize(), "value": stats[name], "display_type": "number"})
        keywords = tuple(dict.fromkeys(keyword for trait in traits for keyword in trait.keywords))
        description = describe(breed_def.value, traits, stats, self.rng)

        assignment = TraitAssignment(
            breed=breed_def.value,
            attributes=tuple(attributes),
            rarity_score=round(breakdown.total, 2),
            tier=tier,
            breakdown=breakdown,
            description=description,
            keywords=keywords,
            stats=stats,
            background=background,
            special=special,
            requested_breed=requested,
        )
        emit(
            self.events,
            "traits_assigned",
            token_id=token_id,
            breed=assignment.breed,
            tier=tier,
            score=assignment.rarity_score,
            synergies=list(breakdown.synergies),
            special=special.value if special else None,
        )
        return assignment

    def _weighted_pick(self, pool: Sequence[TraitDef]) -> TraitDef:
        weights = [(item.rarity_score or DEFAULT_RARITY_SCORE) ** 2 for item in pool]
        return self.rng.choices(list(pool), weights=weights, k=1)[0]

    def _pick_background(self, breed: str) -> BackgroundDef:
        weights = [
            (bg.rarity_score ** 2) * (BACKGROUND_AFFINITY_MULTIPLIER if breed in bg.affinity_breeds else 1)
            for bg in BACKGROUNDS
        ]
        return self.rng.choices(list(BACKGROUNDS), weights=weights, k=1)[0]

    def _roll_special(self) -> SpecialTraitDef | None:
        roll = self.rng.random()
        if roll < self.mythic_chance:
            return self.rng.choice(MYTHIC_TRAITS)
        if roll < self.mythic_chance + self.unique_chance:
            return self.rng.choice(UNIQUE_TRAITS)
        return None

    def _stats(
        self,
        traits: Sequence[ScoredTrait],
        background: BackgroundDef,
        special: SpecialTraitDef | None,
    ) -> dict[str, int]:
        stats = {name: 5 for name in STAT_NAMES}
        values = {trait.trait_type: trait.value for trait in traits}
        for table, key in (
            (BREED_STAT_BONUS, "Breed"),
            (WEAPON_STAT_BONUS, "Weapon"),
            (ELEMENT_STAT_BONUS, "Element"),
        ):
            for stat, bonus in table.get(values.get(key, ""), {}).items():
                stats[stat] += bonus
        for stat, bonus in background.stat_bonus.items():
            stats[stat] += bonus
        for name in STAT_NAMES:
            stats[name] += self.rng.randint(0, 3)
        if special is not None and special.rarity == "Mythic":
            for name in STAT_NAMES:
                stats[name] += 3
        elif special is not None:
            for stat, bonus in UNIQUE_STAT_BONUS.get(special.trait_type, {}).items():
                stats[stat] += bonus
        return {name: max(1, min(10, value)) for name, value in stats.items()}


def _restrict(pool: Sequence[TraitDef], preferred: Sequence[str] | None) -> Sequence[TraitDef]:
    if not preferred:
        return pool
    subset = [item for item in pool if item.value in preferred]
    return subset or pool


_DESCRIPTION_PATTERNS = (
    "A {rank} {breed} ninja cat from the {clan}, wielding a {weapon} infused with {element} energy. "
    "Known for {specialty}, this warrior has sworn to defeat {villain} and restore peace to the realm. "
    "They are often found in the {background}, {flavor}.",
    "Trained in the secret arts of the {clan}, this {breed} ninja cat has mastered the {stance} stance. "
    "Armed with a legendary {weapon} and commanding {element} techniques, the {rank} warrior excels at "
    "{specialty}. The {background} is {flavor}.",
    "A mysterious {breed} warrior from the shadows of the {clan}, this {rank} ninja cat wields a deadly "
    "{weapon}. Their mastery of {element} techniques and {stance} stance makes them formidable in "
    "{specialty}, especially in the {background}, {flavor}.",
    "Born under a rare celestial alignment, this {breed} ninja of the {clan} carries the mark of destiny. "
    "Their {element} powers flow through their {weapon} as they move with perfect {stance} form. Now a "
    "{rank} warrior known for {specialty}, they have claimed the {background} as their domain, {flavor}.",
)


def describe(
    breed: str,
    traits: Sequence[ScoredTrait],
    stats: Mapping[str, int],
    rng: random.Random,
) -> str:
    values = {trait.trait_type: trait.value for trait in traits}
    specialty = {
        "agility": "swift movements",
        "stealth": "silent operations",
        "power": "powerful strikes",
        "intelligence": "tactical mastery",
    }[max(STAT_NAMES, key=lambda name: stats[name])]
    background = values.get("Background", "")
    element = values.get("Element", "Fire")
    text = rng.choice(_DESCRIPTION_PATTERNS).format(
        rank=values.get("Rank", "Novice").lower(),
        breed=breed,
        clan=CLANS.get(breed, "Shadow Paw Clan"),
        weapon=values.get("Weapon", "Katana").lower(),
        element=element.lower(),
        stance=values.get("Stance", "Attack").lower(),
        specialty=specialty,
        villain=VILLAINS.get(element, "the Evil Overlord"),
        background=background.lower() or "shadows",
        flavor=BACKGROUND_FLAVOR.get(background, "where they pursue their ninja path"),
    )
    accessory = values.get("Accessory")
    if accessory:
        text += f" Their {accessory.lower()} is a symbol of honor earned through countless victorious battles."
    for trait in traits:
        if trait.rarity == "Unique":
            text += (
                f" This warrior possesses the rare {trait.value} {trait.trait_type.lower()}, "
                "allowing them to overcome seemingly impossible odds."
            )
        elif trait.rarity == "Mythic":
            text += (
                f" Legends tell that they were blessed by the Cat Gods with the mythical {trait.value}, "
                "a power so rare it appears only once in a thousand generations."
            )
    return text


def build_prompt(assignment: TraitAssignment) -> str:
    """Compose the base image prompt from an assignment's visible traits."""
    parts = [
        f"{assignment.breed} ninja cat",
        f"wielding a {str(assignment.value_of('Weapon') or 'katana').lower()}",
        f"in a {str(assignment.value_of('Stance') or 'attack').lower()} stance",
        f"with {str(assignment.value_of('Element') or 'fire').lower()} energy",
    ]
    accessory = assignment.value_of("Accessory")
    if accessory:
        parts.append(f"wearing a {str(accessory).lower()}")
    parts.append(assignment.background.description)
    return ", ".join(parts)
