"""Trait tables, breed weightings, synergy pairs and backgrounds."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping


@dataclass(frozen=True)
class TraitDef:
    value: str
    rarity: str
    rarity_score: int
    keywords: tuple[str, ...] = ()


@dataclass(frozen=True)
class SpecialTraitDef:
    trait_type: str
    value: str
    rarity: str
    keywords: tuple[str, ...] = ()


@dataclass(frozen=True)
class SynergyPair:
    type1: str
    value1: str
    type2: str
    value2: str
    bonus: int


@dataclass(frozen=True)
class BackgroundDef:
    name: str
    description: str
    rarity: str
    rarity_score: int
    keywords: tuple[str, ...] = ()
    affinity_breeds: tuple[str, ...] = ()
    stat_bonus: Mapping[str, int] = field(default_factory=dict)


def _t(value: str, rarity: str, score: int, *keywords: str) -> TraitDef:
    return TraitDef(value, rarity, score, tuple(keywords))


RARITY_POINTS: dict[str, int] = {
    "Common": 25,
    "Uncommon": 45,
    "Rare": 65,
    "Epic": 80,
    "Legendary": 90,
    "Unique": 98,
    "Mythic": 125,
}

BREEDS: tuple[TraitDef, ...] = (
    _t("Tabby", "Common", 30, "striped", "orange", "common"),
    _t("Siamese", "Common", 25, "cream", "pointed", "sleek"),
    _t("Calico", "Uncommon", 20, "patched", "tricolor", "spots"),
    _t("Maine Coon", "Uncommon", 18, "large", "fluffy", "powerful"),
    _t("Bengal", "Rare", 15, "spotted", "wild", "agile"),
    _t("Bombay", "Rare", 14, "black", "sleek", "shadow"),
    _t("Persian", "Epic", 10, "fluffy", "round", "ornate"),
    _t("Sphynx", "Epic", 8, "hairless", "wrinkled", "alien"),
    _t("Nyan", "Legendary", 5, "rainbow", "pixelated", "meme"),
    _t("Shadow", "Legendary", 3, "void", "mist", "phantom"),
)

WEAPONS: tuple[TraitDef, ...] = (
    _t("Katana", "Common", 30, "sword", "blade", "japanese"),
    _t("Shuriken", "Common", 25, "throwing star", "metal", "sharp"),
    _t("Nunchucks", "Uncommon", 20, "chain", "wood", "swinging"),
    _t("Kunai", "Uncommon", 18, "dagger", "throwing", "rope"),
    _t("Sai", "Rare", 15, "fork", "prongs", "defensive"),
    _t("Bo Staff", "Rare", 12, "long", "wooden", "staff"),
    _t("Twin Blades", "Epic", 10, "dual", "daggers", "fast"),
    _t("Kusarigama", "Epic", 8, "chain", "sickle", "weight"),
    _t("War Fan", "Legendary", 5, "metal", "bladed", "elegant"),
    _t("Ghost Dagger", "Legendary", 3, "ethereal", "translucent", "glowing"),
    _t("Chakram", "Common", 28, "ring", "throwing", "circular"),
    _t("Dragon Spear", "Epic", 9, "dragon", "long", "powerful"),
    _t("Electro Tonfa", "Rare", 14, "electric", "baton", "defensive"),
    _t("Flame Whip", "Rare", 13, "fire", "flexible", "burning"),
    _t("Ice Needles", "Uncommon", 19, "frozen", "sharp", "multiple"),
    _t("Shadow Claws", "Epic", 11, "darkness", "claws", "stealth"),
    _t("Wind Blades", "Rare", 16, "air", "cutting", "invisible"),
    _t("Mystic Orb", "Legendary", 4, "magic", "floating", "energy"),
    _t("Thunder Hammer", "Epic", 7, "lightning", "heavy", "crushing"),
    _t("Void Blade", "Legendary", 2, "emptiness", "dark", "cutting"),
)

STANCES: tuple[TraitDef, ...] = (
    _t("Attack", "Common", 30, "aggressive", "forward", "striking"),
    _t("Defense", "Common", 25, "guarded", "balanced", "blocking"),
    _t("Stealth", "Uncommon", 20, "hidden", "crouching", "sneaking"),
    _t("Agility", "Uncommon", 18, "acrobatic", "jumping", "flipping"),
    _t("Focus", "Rare", 15, "concentration", "meditation", "precise"),
    _t("Shadow", "Rare", 12, "darkness", "invisible", "merging"),
    _t("Berserker", "Epic", 8, "rage", "fury", "wild"),
    _t("Crane", "Epic", 10, "balanced", "one-leg", "patient"),
    _t("Dragon", "Legendary", 5, "powerful", "mythical", "flowing"),
    _t("Void", "Legendary", 3, "emptiness", "formless", "transcendent"),
    _t("Lotus Stance", "Rare", 14, "meditation", "peaceful", "centered"),
    _t("Falcon Dive", "Uncommon", 19, "aerial", "diving", "swift"),
    _t("Iron Wall", "Common", 27, "defensive", "immovable", "solid"),
    _t("Lightning Flash", "Epic", 9, "speed", "electric", "instant"),
    _t("Tiger Prowl", "Uncommon", 17, "predatory", "stalking", "feline"),
    _t("Phoenix Rising", "Legendary", 4, "rebirth", "fire", "ascending"),
    _t("Serpent Coil", "Rare", 13, "flexible", "binding", "flowing"),
    _t("Mountain Guard", "Common", 26, "sturdy", "enduring", "protective"),
)

ELEMENTS: tuple[TraitDef, ...] = (
    _t("Fire", "Common", 30, "flames", "burning", "red"),
    _t("Water", "Common", 25, "flowing", "blue", "adaptable"),
    _t("Earth", "Uncommon", 20, "solid", "brown", "strong"),
    _t("Wind", "Uncommon", 18, "air", "quick", "invisible"),
    _t("Lightning", "Rare", 15, "electric", "fast", "yellow"),
    _t("Ice", "Rare", 12, "frozen", "cold", "crystalline"),
    _t("Shadow", "Epic", 8, "darkness", "black", "stealth"),
    _t("Light", "Epic", 10, "bright", "white", "blinding"),
    _t("Void", "Legendary", 5, "empty", "nothingness", "purple"),
    _t("Cosmic", "Legendary", 3, "stars", "space", "universal"),
    _t("Ether", "Rare", 14, "mystical", "ethereal", "ghostly"),
    _t("Storm", "Epic", 9, "tempest", "chaos", "powerful"),
    _t("Magma", "Rare", 13, "molten", "volcanic", "intense"),
    _t("Aurora", "Legendary", 4, "northern lights", "colorful", "mystical"),
)

RANKS: tuple[TraitDef, ...] = (
    _t("Novice", "Common", 30, "beginner", "training", "inexperienced"),
    _t("Adept", "Common", 25, "skilled", "practiced", "competent"),
    _t("Elite", "Uncommon", 20, "specialized", "talented", "expert"),
    _t("Veteran", "Uncommon", 18, "experienced", "battle-worn", "proven"),
    _t("Master", "Rare", 15, "perfected", "teacher", "superior"),
    _t("Shadow Master", "Rare", 12, "stealth", "unseen", "infiltrator"),
    _t("Mystic", "Epic", 10, "magical", "spiritual", "enlightened"),
    _t("Warlord", "Epic", 8, "commander", "feared", "powerful"),
    _t("Legendary", "Legendary", 5, "mythical", "story-worthy", "renowned"),
    _t("Immortal", "Legendary", 3, "deathless", "eternal", "godlike"),
)

ACCESSORIES: tuple[TraitDef, ...] = (
    _t("Headband", "Common", 30, "cloth", "forehead", "symbol"),
    _t("Scarf", "Common", 25, "neck", "flowing", "colored"),
    _t("Armor Piece", "Uncommon", 20, "protection", "metal", "plated"),
    _t("Belt", "Uncommon", 18, "waist", "utility", "colored"),
    _t("Gloves", "Rare", 15, "hands", "grip", "armored"),
    _t("Face Mask", "Rare", 12, "concealed", "mysterious", "hidden"),
    _t("Enchanted Amulet", "Epic", 10, "glowing", "magical", "powerful"),
    _t("Spirit Companion", "Epic", 8, "floating", "ethereal", "helper"),
    _t("Ancient Scroll", "Legendary", 5, "knowledge", "power", "secret"),
    _t("Celestial Mark", "Legendary", 3, "glowing", "divine", "blessed"),
    _t("Smoke Bomb", "Common", 28, "concealment", "escape", "tactical"),
    _t("Spirit Flute", "Uncommon", 22, "music", "spiritual", "calming"),
    _t("Ninja Pouch", "Common", 26, "storage", "utility", "leather"),
    _t("Claw Guards", "Rare", 14, "protection", "claws", "metal"),
    _t("Shadow Cloak", "Epic", 9, "stealth", "darkness", "flowing"),
    _t("Mystic Beads", "Rare", 13, "meditation", "spiritual", "prayer"),
    _t("Wind Chimes", "Uncommon", 19, "sound", "wind", "harmony"),
)

# Drawn in this order; the category key doubles as the attribute trait_type.
TRAIT_CATEGORIES: dict[str, tuple[TraitDef, ...]] = {
    "Weapon": WEAPONS,
    "Stance": STANCES,
    "Element": ELEMENTS,
    "Rank": RANKS,
    "Accessory": ACCESSORIES,
}

BREED_PREFERENCES: dict[str, dict[str, tuple[str, ...]]] = {
    "Tabby": {
        "Weapon": ("Shuriken", "Katana"),
        "Stance": ("Attack", "Agility"),
        "Element": ("Fire", "Earth"),
    },
    "Siamese": {
        "Stance": ("Stealth", "Agility"),
        "Element": ("Water", "Wind"),
        "Accessory": ("Face Mask", "Scarf"),
    },
    "Calico": {
        "Weapon": ("Sai", "Nunchucks"),
        "Stance": ("Focus", "Defense"),
        "Element": ("Earth", "Fire"),
    },
    "Maine Coon": {
        "Weapon": ("Bo Staff", "Kusarigama"),
        "Stance": ("Defense", "Focus"),
        "Element": ("Earth", "Ice"),
    },
    "Bengal": {
        "Weapon": ("Twin Blades", "Kunai"),
        "Stance": ("Berserker", "Agility"),
        "Element": ("Lightning", "Fire"),
    },
    "Bombay": {
        "Weapon": ("Kusarigama", "Ghost Dagger"),
        "Stance": ("Shadow", "Stealth"),
        "Element": ("Shadow", "Void"),
    },
    "Persian": {
        "Weapon": ("War Fan", "Sai"),
        "Stance": ("Focus", "Crane"),
        "Element": ("Light", "Wind"),
        "Accessory": ("Enchanted Amulet", "Celestial Mark"),
    },
    "Sphynx": {
        "Weapon": ("Kusarigama", "War Fan"),
        "Stance": ("Focus", "Void"),
        "Element": ("Void", "Lightning"),
        "Accessory": ("Ancient Scroll", "Spirit Companion"),
    },
    "Nyan": {
        "Element": ("Cosmic", "Light"),
        "Accessory": ("Celestial Mark",),
        "Rank": ("Immortal", "Legendary"),
    },
    "Shadow": {
        "Element": ("Shadow", "Void"),
        "Stance": ("Shadow", "Stealth"),
        "Weapon": ("Ghost Dagger", "Kusarigama"),
    },
}

MYTHIC_TRAITS: tuple[SpecialTraitDef, ...] = (
    SpecialTraitDef("Blessing", "Nine Lives", "Mythic", ("resurrection", "immortal", "reborn")),
    SpecialTraitDef("Power", "Time Whisker", "Mythic", ("temporal", "time-bending", "clock")),
    SpecialTraitDef("Title", "Cat God", "Mythic", ("deity", "worship", "almighty")),
    SpecialTraitDef("Ability", "Dimension Pounce", "Mythic", ("teleport", "reality-shift", "portal")),
    SpecialTraitDef("Secret", "Catnip Mastery", "Mythic", ("euphoria", "hallucination", "power-boost")),
)

UNIQUE_TRAITS: tuple[SpecialTraitDef, ...] = (
    SpecialTraitDef("Technique", "Shadow Clone", "Unique", ("duplicate", "illusion", "multiple")),
    SpecialTraitDef("Skill", "Whisker Sense", "Unique", ("detection", "precognition", "awareness")),
    SpecialTraitDef("Move", "Purrfect Strike", "Unique", ("critical", "devastating", "precise")),
    SpecialTraitDef("Style", "Feline Fury", "Unique", ("aggressive", "combo", "rapid")),
    SpecialTraitDef("Secret", "Nine Shadow Paths", "Unique", ("teleport", "afterimage", "confusion")),
    SpecialTraitDef("Ability", "Cat's Eye", "Unique", ("perception", "night-vision", "analysis")),
    SpecialTraitDef("Power", "Sonic Meow", "Unique", ("sound", "shockwave", "stun")),
    SpecialTraitDef("Mastery", "Yarn Manipulation", "Unique", ("binding", "whip", "ensnare")),
)

SYNERGY_PAIRS: tuple[SynergyPair, ...] = (
    SynergyPair("Breed", "Shadow", "Element", "Shadow", 15),
    SynergyPair("Breed", "Nyan", "Element", "Cosmic", 15),
    SynergyPair("Breed", "Bengal", "Element", "Fire", 10),
    SynergyPair("Breed", "Siamese", "Element", "Water", 10),
    SynergyPair("Breed", "Maine Coon", "Element", "Earth", 10),
    SynergyPair("Weapon", "Katana", "Stance", "Attack", 8),
    SynergyPair("Weapon", "Bo Staff", "Stance", "Defense", 10),
    SynergyPair("Weapon", "Shuriken", "Stance", "Stealth", 12),
    SynergyPair("Weapon", "Twin Blades", "Stance", "Agility", 14),
    SynergyPair("Weapon", "Ghost Dagger", "Stance", "Shadow", 16),
    SynergyPair("Weapon", "War Fan", "Stance", "Focus", 12),
    SynergyPair("Element", "Fire", "Accessory", "Headband", 7),
    SynergyPair("Element", "Water", "Accessory", "Scarf", 9),
    SynergyPair("Element", "Shadow", "Accessory", "Face Mask", 13),
    SynergyPair("Element", "Cosmic", "Accessory", "Celestial Mark", 15),
    SynergyPair("Background", "Dojo", "Breed", "Tabby", 10),
    SynergyPair("Background", "Bamboo Forest", "Breed", "Calico", 10),
    SynergyPair("Background", "Night Sky", "Breed", "Bombay", 12),
    SynergyPair("Background", "Night Sky", "Breed", "Shadow", 15),
    SynergyPair("Background", "Mountain Temple", "Breed", "Persian", 12),
    SynergyPair("Background", "Neon City", "Breed", "Nyan", 14),
    SynergyPair("Background", "Sakura Garden", "Element", "Wind", 11),
    SynergyPair("Background", "Ninja Fortress", "Weapon", "Katana", 8),
    SynergyPair("Background", "Cosmic Dimension", "Element", "Cosmic", 16),
    SynergyPair("Background", "Lava Cavern", "Element", "Fire", 13),
    SynergyPair("Background", "Ancient Scroll", "Rank", "Legendary", 17),
    SynergyPair("Background", "Spirit Realm", "Element", "Void", 18),
)

BACKGROUNDS: tuple[BackgroundDef, ...] = (
    BackgroundDef(
        "Dojo",
        "in a traditional Japanese dojo with wooden floors and training equipment",
        "Common", 30, ("training", "wooden", "indoor"), ("Tabby", "Bengal"), {"power": 1},
    ),
    BackgroundDef(
        "Bamboo Forest",
        "in a dense bamboo forest with dappled light filtering through",
        "Common", 25, ("green", "nature", "peaceful"), ("Calico", "Siamese"), {"stealth": 1},
    ),
    BackgroundDef(
        "Night Sky",
        "under a starlit night sky with a full moon illuminating the scene",
        "Uncommon", 20, ("dark", "moon", "stars"), ("Bombay", "Shadow"), {"stealth": 1},
    ),
    BackgroundDef(
        "Mountain Temple",
        "at an ancient mountain temple with stone lanterns and cherry blossoms",
        "Uncommon", 18, ("spiritual", "ancient", "stone"), ("Persian", "Sphynx"), {"intelligence": 1},
    ),
    BackgroundDef(
        "Neon City",
        "on city rooftops with vibrant neon signs illuminating the night",
        "Rare", 15, ("urban", "bright", "modern"), ("Bengal", "Nyan"), {"agility": 1},
    ),
    BackgroundDef(
        "Pixel Void",
        "against a simple pixel art background with minimal details",
        "Common", 28, ("minimal", "clean", "simple"), (), {},
    ),
    BackgroundDef(
        "Sakura Garden",
        "in a tranquil garden with falling cherry blossom petals",
        "Rare", 12, ("pink", "peaceful", "flowers"), ("Persian", "Calico"), {"intelligence": 1},
    ),
    BackgroundDef(
        "Ninja Fortress",
        "inside a secret fortress with training dummies and weapon racks",
        "Rare", 15, ("fortress", "training", "weapons"), ("Tabby", "Siamese"), {"power": 1, "stealth": 1},
    ),
    BackgroundDef(
        "Cosmic Dimension",
        "in a strange dimension with swirling cosmic energies and floating platforms",
        "Epic", 8, ("space", "magical", "otherworldly"), ("Nyan", "Shadow"), {"power": 1, "intelligence": 1},
    ),
    BackgroundDef(
        "Lava Cavern",
        "inside a volcanic cavern with bubbling lava and glowing crystals",
        "Epic", 10, ("hot", "danger", "orange"), ("Bengal", "Tabby"), {"power": 2},
    ),
    BackgroundDef(
        "Ancient Scroll",
        "depicted on an ancient scroll painting with ink wash style",
        "Legendary", 5, ("scroll", "painting", "ink"), ("Sphynx", "Persian"), {"intelligence": 2},
    ),
    BackgroundDef(
        "Spirit Realm",
        "in the ethereal spirit realm with glowing wisps and floating lanterns",
        "Legendary", 3, ("spiritual", "glowing", "magical"), ("Shadow", "Nyan"),
        {"stealth": 1, "intelligence": 1, "agility": 1},
    ),
    BackgroundDef(
        "Frozen Wasteland",
        "in a harsh frozen wasteland with ice crystals and howling winds",
        "Rare", 14, ("cold", "harsh", "desolate"), ("Maine Coon", "Sphynx"), {"power": 1, "stealth": 1},
    ),
    BackgroundDef(
        "Celestial Observatory",
        "in an ancient observatory with star charts and mystical instruments",
        "Epic", 9, ("stars", "mystical", "ancient"), ("Persian", "Sphynx"), {"intelligence": 2},
    ),
    BackgroundDef(
        "Underwater Temple",
        "in a sunken temple beneath the waves with coral formations",
        "Rare", 16, ("underwater", "temple", "coral"), ("Siamese", "Calico"), {"agility": 1, "intelligence": 1},
    ),
    BackgroundDef(
        "Lightning Fields",
        "on a plain where lightning constantly strikes the ground",
        "Epic", 11, ("electric", "dangerous", "energetic"), ("Bengal", "Nyan"), {"power": 1, "agility": 1},
    ),
    BackgroundDef(
        "Mystic Garden",
        "in a magical garden where flowers glow and plants move on their own",
        "Uncommon", 17, ("magical", "glowing", "plants"), ("Calico", "Persian"), {"intelligence": 1},
    ),
)

CLANS: dict[str, str] = {
    "Tabby": "Tora Clan",
    "Siamese": "Twin Moon Clan",
    "Maine Coon": "Mountain Peak Clan",
    "Bengal": "Spotted Fang Clan",
    "Bombay": "Night Shadow Clan",
    "Calico": "Three Colors Clan",
    "Persian": "Royal Whisker Clan",
    "Sphynx": "Ancient Sphinx Order",
    "Nyan": "Rainbow Path",
    "Shadow": "Void Walker Sect",
}

VILLAINS: dict[str, str] = {
    "Fire": "the Flame Tyrant",
    "Water": "the Deep Ocean Shogun",
    "Earth": "the Stone Emperor",
    "Wind": "the Cyclone Daimyo",
    "Lightning": "the Thunder King",
    "Ice": "the Frost Monarch",
    "Shadow": "the Darkness Overlord",
    "Light": "the Blinding Sovereign",
    "Void": "the Emptiness Devourer",
    "Cosmic": "the Star Conqueror",
}

BACKGROUND_FLAVOR: dict[str, str] = {
    "Dojo": "where they train tirelessly to perfect their technique",
    "Bamboo Forest": "where they meditate among the rustling bamboo",
    "Night Sky": "where they blend with shadows under moonlight",
    "Mountain Temple": "where ancient wisdom guides their path",
    "Neon City": "where they prowl the rooftops unseen",
    "Pixel Void": "where they hone their skills in isolation",
    "Sakura Garden": "where falling petals mark their graceful movements",
    "Ninja Fortress": "where they prepare for dangerous missions",
    "Cosmic Dimension": "where reality bends to their will",
    "Lava Cavern": "where they temper their spirit in extreme heat",
    "Ancient Scroll": "where their legend is preserved for eternity",
    "Spirit Realm": "where they commune with ancestral spirits",
    "Frozen Wasteland": "where they endure the harshest conditions",
    "Celestial Observatory": "where they study the movements of the stars",
    "Underwater Temple": "where they master the flowing arts",
    "Lightning Fields": "where they channel raw electrical energy",
    "Mystic Garden": "where they find peace among magical flora",
}

STAT_NAMES: tuple[str, ...] = ("agility", "stealth", "power", "intelligence")

BREED_STAT_BONUS: dict[str, dict[str, int]] = {
    "Tabby": {"agility": 2, "power": 1},
    "Siamese": {"stealth": 2, "intelligence": 1},
    "Maine Coon": {"power": 3, "intelligence": 1},
    "Bengal": {"agility": 3, "power": 1},
    "Calico": {"intelligence": 2, "stealth": 1},
    "Bombay": {"stealth": 3},
    "Persian": {"intelligence": 3, "agility": -1},
    "Sphynx": {"stealth": 1, "intelligence": 2},
    "Nyan": {"agility": 2, "power": 2},
    "Shadow": {"stealth": 3, "power": 2, "agility": 1},
}

WEAPON_STAT_BONUS: dict[str, dict[str, int]] = {
    "Katana": {"power": 2},
    "Shuriken": {"agility": 1, "stealth": 1},
    "Nunchucks": {"agility": 2},
    "Kunai": {"stealth": 2},
    "Sai": {"power": 1, "agility": 1},
    "Bo Staff": {"intelligence": 2},
    "Twin Blades": {"agility": 2, "power": 1},
    "Kusarigama": {"stealth": 1, "intelligence": 2},
    "War Fan": {"intelligence": 2, "power": 1},
    "Ghost Dagger": {"stealth": 3, "power": 1},
}

ELEMENT_STAT_BONUS: dict[str, dict[str, int]] = {
    "Fire": {"power": 2},
    "Water": {"agility": 2},
    "Earth": {"power": 1, "intelligence": 1},
    "Wind": {"agility": 3},
    "Lightning": {"agility": 2, "power": 1},
    "Ice": {"intelligence": 2, "stealth": 1},
    "Shadow": {"stealth": 3},
    "Light": {"intelligence": 2, "power": 1},
    "Void": {"power": 2, "stealth": 2},
    "Cosmic": {"power": 2, "intelligence": 2},
}

UNIQUE_STAT_BONUS: dict[str, dict[str, int]] = {
    "Technique": {"stealth": 1, "agility": 1},
    "Skill": {"intelligence": 2},
    "Move": {"power": 1, "agility": 1},
    "Style": {"agility": 1, "power": 1},
    "Secret": {"stealth": 2},
    "Ability": {"intelligence": 1, "stealth": 1},
    "Power": {"power": 2},
    "Mastery": {"intelligence": 1, "agility": 1},
}


def find_breed(name: str) -> TraitDef | None:
    lowered = name.strip().lower()
    for breed in BREEDS:
        if breed.value.lower() == lowered:
            return breed
    return None


def breed_names() -> list[str]:
    return [breed.value for breed in BREEDS]
