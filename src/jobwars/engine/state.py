from __future__ import annotations

import dataclasses
import random
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Literal

from .actions import Action
from .types import CardDatabase, CardDefinition, Effect, GamePhase, Zone

Event = dict[str, object]

ErrorCode = Literal["illegal_action", "terminal_state"]

PLAYER1_ID = "player1"
PLAYER2_ID = "player2"


@dataclass(frozen=True)
class MatchConfig:
    starting_reputation: int = 20
    starting_hand: int = 5
    max_budget: int = 10
    construction_bonus: int = 1
    ai_delay: float = 0.4
    mulligan_threshold: int = 3
    chump_block_threshold: int = 3


@dataclass(frozen=True)
class Modifier:
    productivity_delta: int
    resilience_delta: int
    description: str
    permanent: bool = False


@dataclass
class CardInstance:
    instance_id: str
    card: CardDefinition
    owner_id: str
    zone: Zone = "deck"
    modifiers: list[Modifier] = field(default_factory=list)
    construction_bonuses: int = 0
    attacking: bool = False
    blocking: bool = False
    tapped: bool = False
    entered_turn: int = 0

    def reset_transient(self) -> None:
        """Forget what a card picked up while on the field, except Construction growth."""
        self.modifiers.clear()
        self.attacking = False
        self.blocking = False
        self.tapped = False


@dataclass
class PlayerState:
    id: str
    name: str
    reputation: int
    deck_id: str
    budget_remaining: int = 0
    # spelled out: the "field" attribute below shadows dataclasses.field
    deck: list[CardInstance] = dataclasses.field(default_factory=list)
    hand: list[CardInstance] = dataclasses.field(default_factory=list)
    field: list[CardInstance] = dataclasses.field(default_factory=list)
    graveyard: list[CardInstance] = dataclasses.field(default_factory=list)
    mulligan_used: bool = False
    # Armed "counter the next opposing Event" charges.
    event_counters: int = 0

    def zone(self, zone: Zone) -> list[CardInstance]:
        if zone == "deck":
            return self.deck
        if zone == "hand":
            return self.hand
        if zone == "field":
            return self.field
        return self.graveyard

    def find(self, instance_id: str, zone: Zone | None = None) -> CardInstance | None:
        zones: tuple[Zone, ...] = (zone,) if zone else ("hand", "field", "graveyard", "deck")
        for z in zones:
            for inst in self.zone(z):
                if inst.instance_id == instance_id:
                    return inst
        return None


@dataclass
class Combat:
    # Declaration order is resolution order.
    attackers: list[str] = field(default_factory=list)
    # attacker instance id -> blocker instance id
    blockers: dict[str, str] = field(default_factory=dict)

    def blocker_for(self, attacker_id: str) -> str | None:
        return self.blockers.get(attacker_id)

    def is_blocking(self, blocker_id: str) -> bool:
        return blocker_id in self.blockers.values()


@dataclass
class PendingEffect:
    owner_id: str
    source_instance_id: str
    effects: tuple[Effect, ...]
    current_index: int = 0

    @property
    def current(self) -> Effect | None:
        if self.current_index >= len(self.effects):
            return None
        return self.effects[self.current_index]


@dataclass
class StepResult:
    ok: bool
    events: list[Event]
    error: str | None = None
    code: ErrorCode | None = None


@dataclass
class GameState:
    cards: CardDatabase
    config: MatchConfig
    seed: int
    rng: random.Random
    game_id: str
    player1: PlayerState
    player2: PlayerState
    turn_number: int = 1
    active_player_id: str = PLAYER1_ID
    phase: GamePhase = "mulligan"
    combat: Combat | None = None
    pending_effect: PendingEffect | None = None
    winner: str | None = None
    is_ai_game: bool = False
    action_log: list[Action] = field(default_factory=list)
    event_log: list[Event] = field(default_factory=list)

    @property
    def players(self) -> tuple[PlayerState, PlayerState]:
        return (self.player1, self.player2)

    def player(self, player_id: str) -> PlayerState:
        if player_id == self.player1.id:
            return self.player1
        if player_id == self.player2.id:
            return self.player2
        raise KeyError(player_id)

    def opponent_id(self, player_id: str) -> str:
        return self.player2.id if player_id == self.player1.id else self.player1.id

    @property
    def active_player(self) -> PlayerState:
        return self.player(self.active_player_id)

    @property
    def inactive_player(self) -> PlayerState:
        return self.player(self.opponent_id(self.active_player_id))

    def locate(self, instance_id: str) -> tuple[PlayerState, CardInstance] | None:
        for ps in self.players:
            inst = ps.find(instance_id)
            if inst is not None:
                return ps, inst
        return None

    def find_on_field(self, instance_id: str) -> CardInstance | None:
        for ps in self.players:
            inst = ps.find(instance_id, "field")
            if inst is not None:
                return inst
        return None

    def field_cards(self) -> Iterator[CardInstance]:
        for ps in self.players:
            yield from ps.field


def record(state: GameState, event_type: str, **fields: object) -> Event:
    ev: Event = {"type": event_type, "turn": state.turn_number, "phase": state.phase}
    ev.update(fields)
    state.event_log.append(ev)
    return ev
