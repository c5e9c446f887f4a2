"""The match session: one canonical GameState plus everyone watching it.

UI code, the network bridge and the AI opponent all talk to the match
through GameEngine. Each entry point either applies the action and pushes
the new state to every subscriber, or rejects it and leaves the state as it
was. Nothing is raised across this boundary.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from collections.abc import Callable, Mapping, Sequence
from typing import TYPE_CHECKING

from . import sandbox
from .actions import (
    Action,
    AdvancePhaseAction,
    AssignBlockerAction,
    CancelEffectAction,
    ConfirmAttackersAction,
    ConfirmBlockersAction,
    DeclareAttackerAction,
    EndTurnAction,
    ForceEndTurnAction,
    MulliganAction,
    PlayCardAction,
    ResolveCombatAction,
    ResolveTargetAction,
)
from .ai import AI_PLAYER_ID, AIOpponent, Scheduler
from .combat import can_attack, can_block
from .effects import valid_targets
from .match import new_match, step
from .serialize import ActionDecodeError, action_from_dict, game_result
from .state import CardInstance, GameState, MatchConfig, Modifier, PlayerState, StepResult
from .stats import effective_cost, effective_productivity, effective_resilience
from .types import CardDatabase, Zone

if TYPE_CHECKING:
    from jobwars.services.telemetry import TelemetryService

logger = logging.getLogger(__name__)

StateListener = Callable[[GameState], None]

# How many recent action ids are remembered for retransmissions.
ACK_CACHE_SIZE = 256


def _no_match() -> StepResult:
    return StepResult(ok=False, events=[], error="No match in progress.", code="illegal_action")


class GameEngine:
    def __init__(
        self,
        cards: CardDatabase,
        config: MatchConfig | None = None,
        telemetry: TelemetryService | None = None,
        ack_cache_size: int = ACK_CACHE_SIZE,
    ) -> None:
        self.cards = cards
        self.config = config or MatchConfig()
        self._telemetry = telemetry
        self._state: GameState | None = None
        self._listeners: list[StateListener] = []
        self._acks: OrderedDict[str, StepResult] = OrderedDict()
        self._ack_cache_size = ack_cache_size
        self._result_reported = False
        self._ai: AIOpponent | None = None

    @property
    def state(self) -> GameState | None:
        return self._state

    # --- State feed ---

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self) -> None:
        state = self._state
        if state is None:
            return
        if state.winner is not None and not self._result_reported:
            self._result_reported = True
            payload = game_result(state)
            logger.info("game %s won by %s on turn %d", state.game_id, state.winner, state.turn_number)
            if self._telemetry is not None:
                self._telemetry.log("game_result", payload)
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("state listener %r failed", listener)

    # --- Lifecycle ---

    def start_game(
        self,
        deck1: Sequence[str],
        deck2: Sequence[str],
        seed: int,
        *,
        names: tuple[str, str] = ("Joueur 1", "Joueur 2"),
        deck_ids: tuple[str, str] = ("", ""),
        is_ai_game: bool = False,
    ) -> GameState:
        self._state = new_match(
            self.cards,
            deck1,
            deck2,
            seed,
            self.config,
            names=names,
            deck_ids=deck_ids,
            is_ai_game=is_ai_game,
        )
        self._acks.clear()
        self._result_reported = False
        logger.debug("started game %s (seed=%d, ai=%s)", self._state.game_id, seed, is_ai_game)
        self._emit()
        return self._state

    def attach_ai(self, scheduler: Scheduler | None = None, player_id: str | None = None) -> AIOpponent:
        """Create and activate this match's AI opponent."""
        if self._ai is not None:
            self._ai.deactivate()
        self._ai = AIOpponent(self, scheduler=scheduler, player_id=player_id or AI_PLAYER_ID)
        self._ai.activate()
        return self._ai

    @property
    def ai(self) -> AIOpponent | None:
        return self._ai

    def close(self) -> None:
        if self._ai is not None:
            self._ai.deactivate()
            self._ai = None
        self._listeners.clear()

    # --- Action surface ---

    def apply(self, action: Action, action_id: str | None = None) -> StepResult:
        """Apply an action once. A repeated action_id gets the first result back."""
        if action_id is not None and action_id in self._acks:
            logger.debug("duplicate action %s ignored", action_id)
            return self._acks[action_id]
        state = self._state
        if state is None:
            return _no_match()
        result = step(state, action)
        if action_id is not None:
            self._acks[action_id] = result
            while len(self._acks) > self._ack_cache_size:
                self._acks.popitem(last=False)
        if result.ok:
            self._emit()
        else:
            logger.debug("rejected %s: %s", type(action).__name__, result.error)
        return result

    def apply_message(self, raw: Mapping[str, object]) -> StepResult:
        """Apply a network message {"id", "type", "playerId", "data"}."""
        try:
            action, action_id = action_from_dict(raw)
        except ActionDecodeError as e:
            logger.warning("bad action message: %s", e)
            return StepResult(ok=False, events=[], error=str(e), code="illegal_action")
        return self.apply(action, action_id)

    def _active_id(self) -> str:
        return self._state.active_player_id if self._state is not None else ""

    def _defender_id(self) -> str:
        if self._state is None:
            return ""
        return self._state.opponent_id(self._state.active_player_id)

    def mulligan(self, player_id: str, card_ids: Sequence[str]) -> StepResult:
        return self.apply(MulliganAction(player=player_id, instance_ids=tuple(card_ids)))

    def play_card(self, instance_id: str) -> StepResult:
        return self.apply(PlayCardAction(player=self._active_id(), instance_id=instance_id))

    def declare_attacker(self, instance_id: str) -> StepResult:
        return self.apply(DeclareAttackerAction(player=self._active_id(), instance_id=instance_id))

    def confirm_attackers(self) -> StepResult:
        return self.apply(ConfirmAttackersAction(player=self._active_id()))

    def assign_blocker(self, blocker_id: str, attacker_id: str) -> StepResult:
        return self.apply(
            AssignBlockerAction(player=self._defender_id(), blocker_id=blocker_id, attacker_id=attacker_id)
        )

    def confirm_blockers(self) -> StepResult:
        return self.apply(ConfirmBlockersAction(player=self._defender_id()))

    def resolve_combat(self) -> StepResult:
        return self.apply(ResolveCombatAction(player=self._active_id()))

    def advance_phase(self) -> StepResult:
        return self.apply(AdvancePhaseAction(player=self._active_id()))

    def _effect_owner(self) -> str:
        state = self._state
        if state is not None and state.pending_effect is not None:
            return state.pending_effect.owner_id
        return self._active_id()

    def resolve_targeted_effect(self, instance_id: str) -> StepResult:
        return self.apply(ResolveTargetAction(player=self._effect_owner(), instance_id=instance_id))

    def cancel_pending_effect(self) -> StepResult:
        return self.apply(CancelEffectAction(player=self._effect_owner()))

    def end_turn(self) -> StepResult:
        return self.apply(EndTurnAction(player=self._active_id()))

    def force_end_turn(self) -> StepResult:
        """Turn timer expired: skip whatever is left of the active turn."""
        return self.apply(ForceEndTurnAction(player=self._active_id()))

    # --- Manual overrides (debug / sandbox) ---

    def _manual(self, fn: Callable[[GameState], StepResult]) -> StepResult:
        state = self._state
        if state is None:
            return _no_match()
        result = fn(state)
        if result.ok:
            self._emit()
        return result

    def adjust_reputation(self, player_id: str, delta: int) -> StepResult:
        return self._manual(lambda s: sandbox.adjust_reputation(s, player_id, delta))

    def adjust_budget(self, player_id: str, delta: int) -> StepResult:
        return self._manual(lambda s: sandbox.adjust_budget(s, player_id, delta))

    def draw_extra_cards(self, player_id: str, count: int) -> StepResult:
        return self._manual(lambda s: sandbox.draw_extra_cards(s, player_id, count))

    def move_card(self, instance_id: str, to_zone: Zone) -> StepResult:
        return self._manual(lambda s: sandbox.move_card(s, instance_id, to_zone))

    def add_modifier(self, instance_id: str, modifier: Modifier) -> StepResult:
        return self._manual(lambda s: sandbox.add_modifier(s, instance_id, modifier))

    def shuffle_deck(self, player_id: str) -> StepResult:
        return self._manual(lambda s: sandbox.shuffle_deck(s, player_id))

    def destroy_card_manual(self, instance_id: str) -> StepResult:
        return self._manual(lambda s: sandbox.destroy_card_manual(s, instance_id))

    # --- Queries ---

    def get_active_player(self) -> PlayerState | None:
        return self._state.active_player if self._state is not None else None

    def get_inactive_player(self) -> PlayerState | None:
        return self._state.inactive_player if self._state is not None else None

    def can_attack(self, instance_id: str) -> bool:
        return self._state is not None and can_attack(self._state, instance_id)

    def can_block(self, instance_id: str, attacker_id: str | None = None) -> bool:
        return self._state is not None and can_block(self._state, instance_id, attacker_id)

    def can_play_card(self, instance_id: str) -> bool:
        state = self._state
        if state is None or state.winner is not None or state.pending_effect is not None:
            return False
        if state.phase != "hiring":
            return False
        ps = state.active_player
        inst = ps.find(instance_id, "hand")
        return inst is not None and effective_cost(state, ps, inst) <= ps.budget_remaining

    def is_attacking(self, instance_id: str) -> bool:
        state = self._state
        return state is not None and state.combat is not None and instance_id in state.combat.attackers

    def is_blocking(self, instance_id: str) -> bool:
        state = self._state
        return state is not None and state.combat is not None and state.combat.is_blocking(instance_id)

    def get_effective_productivity(self, inst: CardInstance) -> int:
        assert self._state is not None
        return effective_productivity(self._state, inst)

    def get_effective_resilience(self, inst: CardInstance) -> int:
        assert self._state is not None
        return effective_resilience(self._state, inst)

    def valid_targets(self) -> list[CardInstance]:
        return valid_targets(self._state) if self._state is not None else []
