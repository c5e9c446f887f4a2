from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Literal

CardType = Literal["job", "tool", "event"]
Rarity = Literal["common", "uncommon", "rare", "epic", "legendary"]
Keyword = Literal["Haste", "FirstStrike", "Reach", "Construction", "Aerial"]

Zone = Literal["deck", "hand", "field", "graveyard"]

GamePhase = Literal[
    "mulligan",
    "budget",
    "draw",
    "hiring",
    "work_attack",
    "work_block",
    "work_damage",
    "end",
]

EffectType = Literal["damage", "destroy", "tap", "debuff", "bounce", "buff", "draw", "repair"]

# Who may be chosen for a step. "none" steps resolve without a target.
TargetType = Literal["none", "enemy_field", "ally_field", "any_field"]

OFFENSIVE_EFFECTS: frozenset[EffectType] = frozenset({"damage", "destroy", "tap", "debuff", "bounce"})


@dataclass(frozen=True)
class Effect:
    type: EffectType
    target_type: TargetType
    amount: int = 0

    @property
    def needs_target(self) -> bool:
        return self.target_type != "none"

    @property
    def offensive(self) -> bool:
        return self.type in OFFENSIVE_EFFECTS


@dataclass(frozen=True)
class Aura:
    """Static bonus a Field card grants to its owner's other same-domain jobs."""

    productivity_delta: int = 0
    resilience_delta: int = 0
    cost_reduction: int = 0


@dataclass(frozen=True)
class ParsedAbility:
    keywords: frozenset[Keyword] = frozenset()
    on_hire: tuple[Effect, ...] = ()
    on_destroyed: tuple[Effect, ...] = ()
    aura: Aura | None = None
    # Field card that cancels the next Event its owner's opponent plays.
    counters_event: bool = False


@dataclass(frozen=True)
class CardDefinition:
    id: str
    name: str
    domain: str
    type: CardType
    rarity: Rarity
    cost: int
    productivity: int = 0
    resilience: int = 0
    ability: str = ""
    effect: str = ""
    flavor_text: str = ""

    @property
    def is_job(self) -> bool:
        return self.type == "job"

    @property
    def text(self) -> str:
        return self.effect if self.type == "event" else self.ability


@dataclass(frozen=True)
class CardDatabase:
    """Immutable card catalog used by the engine."""

    cards: dict[str, CardDefinition]

    def get(self, card_id: str) -> CardDefinition:
        return self.cards[card_id]

    def all_ids(self) -> Sequence[str]:
        return list(self.cards.keys())

    def __contains__(self, card_id: object) -> bool:
        return card_id in self.cards
