"""Reactive greedy opponent.

The AI never drives the match itself. It watches the state feed of a
GameEngine, decides whether it has something to do, and schedules a single
delayed action. While that action is scheduled or running, further
emissions only mark it dirty; the newest state is looked at again once the
action is done. Decisions are pure functions of the state so they can be
tested without a scheduler.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Literal, Protocol

from .combat import blocks_allowed, can_attack, can_block
from .effects import valid_targets
from .state import PLAYER2_ID, CardInstance, GameState
from .stats import effective_cost, effective_productivity, effective_resilience

if TYPE_CHECKING:
    from .session import GameEngine

logger = logging.getLogger(__name__)

AI_PLAYER_ID = PLAYER2_ID
AI_DELAY = 0.4

Decision = Literal["target", "block", "mulligan", "hire", "attack", "resolve_combat", "end_turn"]


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Anything shaped like asyncio's loop.call_later."""

    def call_later(self, delay: float, callback: Callable[[], object]) -> TimerHandle: ...


def decide(state: GameState, player_id: str = AI_PLAYER_ID) -> Decision | None:
    """What the AI wants to do next, or None if it should wait."""
    if not state.is_ai_game or state.winner is not None:
        return None

    pending = state.pending_effect
    if pending is not None:
        return "target" if pending.owner_id == player_id else None

    if state.phase == "work_block" and state.active_player_id != player_id and state.combat is not None:
        return "block"

    if state.phase == "mulligan":
        me = state.player(player_id)
        if me.mulligan_used:
            return None
        # player1 keeps or replaces first
        if player_id != state.player1.id and not state.player1.mulligan_used:
            return None
        return "mulligan"

    if state.active_player_id != player_id:
        return None

    if state.phase == "hiring":
        return "hire"
    if state.phase == "work_attack":
        return "attack"
    if state.phase == "work_damage":
        return "resolve_combat"
    if state.phase == "end":
        return "end_turn"
    return None


def choose_mulligan(state: GameState, player_id: str = AI_PLAYER_ID) -> list[str]:
    threshold = state.config.mulligan_threshold
    return [inst.instance_id for inst in state.player(player_id).hand if inst.card.cost > threshold]


def choose_hire(state: GameState, player_id: str = AI_PLAYER_ID) -> str | None:
    """Cheapest card the AI can pay for, first in hand on ties."""
    ps = state.player(player_id)
    best: CardInstance | None = None
    best_cost = 0
    for inst in ps.hand:
        cost = effective_cost(state, ps, inst)
        if cost > ps.budget_remaining:
            continue
        if best is None or cost < best_cost:
            best = inst
            best_cost = cost
    return best.instance_id if best is not None else None


def choose_attackers(state: GameState, player_id: str = AI_PLAYER_ID) -> list[str]:
    if state.active_player_id != player_id:
        return []
    return [inst.instance_id for inst in state.player(player_id).field if can_attack(state, inst.instance_id)]


def choose_blocks(state: GameState, player_id: str = AI_PLAYER_ID) -> list[tuple[str, str]]:
    """(blocker, attacker) pairs.

    Biggest attackers are handled first. Each gets the cheapest blocker that
    survives it; failing that, an attacker with productivity at or above the
    chump threshold gets the cheapest blocker left, which will die.
    """
    combat = state.combat
    if combat is None or state.active_player_id == player_id:
        return []
    attacker_side = state.active_player
    attackers = [a for a in (attacker_side.find(i, "field") for i in combat.attackers) if a is not None]
    attackers.sort(key=lambda a: effective_productivity(state, a), reverse=True)

    available = [b for b in state.player(player_id).field if can_block(state, b.instance_id)]
    used: set[str] = set()
    blocks: list[tuple[str, str]] = []
    for attacker in attackers:
        if combat.blocker_for(attacker.instance_id) is not None:
            continue
        power = effective_productivity(state, attacker)
        legal = [b for b in available if b.instance_id not in used and blocks_allowed(b, attacker)]
        if not legal:
            continue
        survivors = [b for b in legal if effective_resilience(state, b) > power]
        pool = survivors
        if not pool and power >= state.config.chump_block_threshold:
            pool = legal
        if not pool:
            continue
        blocker = min(pool, key=lambda b: b.card.cost)
        used.add(blocker.instance_id)
        blocks.append((blocker.instance_id, attacker.instance_id))
    return blocks


def choose_target(state: GameState, player_id: str = AI_PLAYER_ID) -> str | None:
    pending = state.pending_effect
    if pending is None or pending.owner_id != player_id:
        return None
    step = pending.current
    targets = valid_targets(state, pending)
    if step is None or not targets:
        return None
    if step.offensive:
        pick = max(targets, key=lambda t: effective_productivity(state, t))
    else:
        allies = [t for t in targets if t.owner_id == player_id] or targets
        pick = min(allies, key=lambda t: effective_productivity(state, t))
    return pick.instance_id


class AIOpponent:
    def __init__(
        self,
        engine: GameEngine,
        scheduler: Scheduler | None = None,
        player_id: str = AI_PLAYER_ID,
        delay: float | None = None,
    ) -> None:
        self.engine = engine
        self.player_id = player_id
        self.delay = engine.config.ai_delay if delay is None else delay
        self._scheduler = scheduler
        self._unsubscribe: Callable[[], None] | None = None
        self._handle: TimerHandle | None = None
        self._acting = False
        self._dirty = False
        self._paused = False

    @property
    def active(self) -> bool:
        return self._unsubscribe is not None

    @property
    def acting(self) -> bool:
        return self._acting

    @property
    def paused(self) -> bool:
        return self._paused

    def activate(self) -> None:
        """Start watching the match. Without a scheduler this needs a running asyncio loop."""
        if self.active:
            return
        if self._scheduler is None:
            self._scheduler = asyncio.get_running_loop()
        self._unsubscribe = self.engine.subscribe(self._on_state)
        logger.debug("AI %s activated", self.player_id)
        state = self.engine.state
        if state is not None:
            self._on_state(state)

    def deactivate(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self._acting = False
        self._dirty = False
        self._paused = False
        logger.debug("AI %s deactivated", self.player_id)

    def pause(self) -> None:
        self._paused = True

    def resume(self) -> None:
        if not self._paused:
            return
        self._paused = False
        self._dirty = False
        state = self.engine.state
        if self.active and state is not None and not self._acting:
            self._evaluate(state)

    def _on_state(self, state: GameState) -> None:
        if self._acting:
            self._dirty = True
            return
        if self._paused:
            return
        self._evaluate(state)

    def _evaluate(self, state: GameState) -> None:
        decision = decide(state, self.player_id)
        if decision is None:
            return
        assert self._scheduler is not None
        logger.debug("AI %s plans %s (phase=%s)", self.player_id, decision, state.phase)
        self._acting = True
        self._dirty = False
        self._handle = self._scheduler.call_later(self.delay, self._fire)

    def _fire(self) -> None:
        self._handle = None
        try:
            state = self.engine.state
            if self.active and not self._paused and state is not None:
                self._act(state)
        finally:
            self._acting = False
        if self._dirty and self.active and not self._paused:
            self._dirty = False
            state = self.engine.state
            if state is not None:
                self._evaluate(state)

    def _act(self, state: GameState) -> None:
        # Decided again here: the state may have moved since scheduling.
        decision = decide(state, self.player_id)
        engine = self.engine
        if decision == "target":
            target = choose_target(state, self.player_id)
            res = engine.cancel_pending_effect() if target is None else engine.resolve_targeted_effect(target)
        elif decision == "block":
            for blocker_id, attacker_id in choose_blocks(state, self.player_id):
                r = engine.assign_blocker(blocker_id, attacker_id)
                if not r.ok:
                    logger.debug("AI block %s -> %s refused: %s", blocker_id, attacker_id, r.error)
            res = engine.confirm_blockers()
        elif decision == "mulligan":
            res = engine.mulligan(self.player_id, choose_mulligan(state, self.player_id))
        elif decision == "hire":
            card_id = choose_hire(state, self.player_id)
            res = engine.advance_phase() if card_id is None else engine.play_card(card_id)
        elif decision == "attack":
            for instance_id in choose_attackers(state, self.player_id):
                r = engine.declare_attacker(instance_id)
                if not r.ok:
                    logger.debug("AI attacker %s refused: %s", instance_id, r.error)
            res = engine.confirm_attackers()
        elif decision == "resolve_combat":
            res = engine.resolve_combat()
        elif decision == "end_turn":
            res = engine.end_turn()
        else:
            return
        if not res.ok:
            logger.warning("AI %s action %s rejected: %s", self.player_id, decision, res.error)
