"""Manual overrides for debugging and sandbox play.

These bypass the phase machine but still respect the terminal state and the
pending-effect lock, and still leave the board consistent.
"""

from __future__ import annotations

from collections.abc import Callable

from .board import check_winner, destroy_instance, draw_cards, move_instance, remove_broken
from .state import GameState, Modifier, StepResult, record
from .types import Zone

ZONES: tuple[Zone, ...] = ("deck", "hand", "field", "graveyard")


def _guarded(state: GameState, fn: Callable[[], str | None]) -> StepResult:
    if state.winner is not None:
        return StepResult(ok=False, events=[], error="Match already ended.", code="terminal_state")
    if state.pending_effect is not None:
        return StepResult(
            ok=False, events=[], error="Resolve or cancel the pending effect first.", code="illegal_action"
        )
    mark = len(state.event_log)
    err = fn()
    if err is not None:
        return StepResult(ok=False, events=[], error=err, code="illegal_action")
    return StepResult(ok=True, events=state.event_log[mark:])


def adjust_reputation(state: GameState, player_id: str, delta: int) -> StepResult:
    def run() -> str | None:
        if player_id not in (state.player1.id, state.player2.id):
            return "Unknown player."
        ps = state.player(player_id)
        ps.reputation = max(0, ps.reputation + delta)
        record(state, "MANUAL_REPUTATION", player=player_id, delta=delta, reputation=ps.reputation)
        check_winner(state)
        return None

    return _guarded(state, run)


def adjust_budget(state: GameState, player_id: str, delta: int) -> StepResult:
    def run() -> str | None:
        if player_id not in (state.player1.id, state.player2.id):
            return "Unknown player."
        ps = state.player(player_id)
        ps.budget_remaining = max(0, ps.budget_remaining + delta)
        record(state, "MANUAL_BUDGET", player=player_id, delta=delta, budget=ps.budget_remaining)
        return None

    return _guarded(state, run)


def draw_extra_cards(state: GameState, player_id: str, count: int) -> StepResult:
    def run() -> str | None:
        if player_id not in (state.player1.id, state.player2.id):
            return "Unknown player."
        if count < 1:
            return "Draw at least one card."
        draw_cards(state, player_id, count)
        return None

    return _guarded(state, run)


def move_card(state: GameState, instance_id: str, to_zone: Zone) -> StepResult:
    def run() -> str | None:
        if to_zone not in ZONES:
            return "Unknown zone."
        found = state.locate(instance_id)
        if found is None:
            return "Unknown card."
        _, inst = found
        if inst.zone == to_zone:
            return "Card is already there."
        move_instance(state, inst, to_zone)
        remove_broken(state)
        return None

    return _guarded(state, run)


def add_modifier(state: GameState, instance_id: str, modifier: Modifier) -> StepResult:
    def run() -> str | None:
        inst = state.find_on_field(instance_id)
        if inst is None:
            return "Modifiers only apply to cards on the field."
        inst.modifiers.append(modifier)
        record(
            state,
            "MANUAL_MODIFIER",
            instance_id=instance_id,
            productivity_delta=modifier.productivity_delta,
            resilience_delta=modifier.resilience_delta,
            description=modifier.description,
        )
        remove_broken(state)
        return None

    return _guarded(state, run)


def shuffle_deck(state: GameState, player_id: str) -> StepResult:
    def run() -> str | None:
        if player_id not in (state.player1.id, state.player2.id):
            return "Unknown player."
        state.rng.shuffle(state.player(player_id).deck)
        record(state, "DECK_SHUFFLED", player=player_id)
        return None

    return _guarded(state, run)


def destroy_card_manual(state: GameState, instance_id: str) -> StepResult:
    def run() -> str | None:
        inst = state.find_on_field(instance_id)
        if inst is None:
            return "Only cards on the field can be destroyed."
        destroy_instance(state, inst, reason="manual")
        remove_broken(state)
        return None

    return _guarded(state, run)
