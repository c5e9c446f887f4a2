from __future__ import annotations

import random
import uuid
from collections.abc import Callable, Iterable, Sequence

from . import effects
from .abilities import parse_card
from .actions import (
    PENDING_EFFECT_ACTIONS,
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
from .board import draw_cards, move_instance, remove_broken
from .combat import can_attack, can_block, resolve_combat
from .state import (
    PLAYER1_ID,
    PLAYER2_ID,
    CardInstance,
    Combat,
    GameState,
    MatchConfig,
    PlayerState,
    StepResult,
    record,
)
from .stats import effective_cost, has_keyword
from .types import CardDatabase, GamePhase


def _illegal(msg: str) -> StepResult:
    return StepResult(ok=False, events=[], error=msg, code="illegal_action")


def _enter_phase(state: GameState, phase: GamePhase) -> None:
    state.phase = phase
    record(state, "PHASE_CHANGED", player=state.active_player_id)


def budget_for_turn(state: GameState) -> int:
    return min(state.config.max_budget, (state.turn_number + 1) // 2)


def _budget_phase(state: GameState) -> None:
    ps = state.active_player
    ps.budget_remaining = budget_for_turn(state)
    record(state, "BUDGET_SET", player=ps.id, budget=ps.budget_remaining)
    for inst in ps.field:
        if inst.card.is_job and has_keyword(inst, "Construction"):
            inst.construction_bonuses += state.config.construction_bonus
            record(
                state,
                "CONSTRUCTION",
                player=ps.id,
                instance_id=inst.instance_id,
                bonus=inst.construction_bonuses,
            )


def _begin_turn(state: GameState) -> None:
    _enter_phase(state, "budget")
    _budget_phase(state)
    _enter_phase(state, "draw")
    draw_cards(state, state.active_player_id, 1)
    _enter_phase(state, "hiring")


def _finish_turn(state: GameState) -> None:
    for inst in state.field_cards():
        inst.tapped = False
        inst.attacking = False
        inst.blocking = False
        inst.modifiers[:] = [m for m in inst.modifiers if m.permanent]
    remove_broken(state)
    state.combat = None
    state.pending_effect = None
    record(state, "TURN_ENDED", player=state.active_player_id)
    if state.winner is not None:
        return
    state.active_player_id = state.opponent_id(state.active_player_id)
    state.turn_number += 1
    _begin_turn(state)


def _mulligan(state: GameState, action: MulliganAction) -> StepResult:
    if state.phase != "mulligan":
        return _illegal("Mulligan is only allowed at the start of the match.")
    expected = state.player1 if not state.player1.mulligan_used else state.player2
    if action.player != expected.id:
        return _illegal(f"Waiting for {expected.id} to mulligan.")
    ids = list(action.instance_ids)
    if len(set(ids)) != len(ids):
        return _illegal("Duplicate card in mulligan.")
    chosen: list[CardInstance] = []
    for instance_id in ids:
        inst = expected.find(instance_id, "hand")
        if inst is None:
            return _illegal("Card is not in hand.")
        chosen.append(inst)

    for inst in chosen:
        move_instance(state, inst, "deck", to_bottom=True)
    draw_cards(state, expected.id, len(chosen))
    expected.mulligan_used = True
    record(state, "MULLIGAN", player=expected.id, replaced=len(chosen))

    if state.player1.mulligan_used and state.player2.mulligan_used:
        _begin_turn(state)
    return StepResult(ok=True, events=[])


def _play_card(state: GameState, action: PlayCardAction) -> StepResult:
    if action.player != state.active_player_id:
        return _illegal("Not your turn.")
    if state.phase != "hiring":
        return _illegal("Cards can only be played during Hiring.")
    ps = state.active_player
    inst = ps.find(action.instance_id, "hand")
    if inst is None:
        return _illegal("Card is not in hand.")
    cost = effective_cost(state, ps, inst)
    if cost > ps.budget_remaining:
        return _illegal("Not enough budget.")

    ps.budget_remaining -= cost
    to_zone = "graveyard" if inst.card.type == "event" else "field"
    move_instance(state, inst, to_zone)
    record(state, "CARD_HIRED", player=ps.id, instance_id=inst.instance_id, card_id=inst.card.id, cost=cost)

    ability = parse_card(inst.card)
    if inst.card.type == "event":
        opponent = state.inactive_player
        if opponent.event_counters > 0:
            opponent.event_counters -= 1
            record(state, "EVENT_COUNTERED", player=ps.id, instance_id=inst.instance_id, by=opponent.id)
            return StepResult(ok=True, events=[])
    elif ability.counters_event:
        ps.event_counters += 1
        record(state, "COUNTER_ARMED", player=ps.id, instance_id=inst.instance_id, charges=ps.event_counters)
    effects.begin(state, ps.id, inst.instance_id, ability.on_hire)
    return StepResult(ok=True, events=[])


def _advance_phase(state: GameState, action: AdvancePhaseAction) -> StepResult:
    if action.player != state.active_player_id:
        return _illegal("Not your turn.")
    if state.phase == "hiring":
        state.combat = Combat()
        _enter_phase(state, "work_attack")
    elif state.phase == "end":
        _finish_turn(state)
    else:
        return _illegal(f"Cannot advance from {state.phase}.")
    return StepResult(ok=True, events=[])


def _declare_attacker(state: GameState, action: DeclareAttackerAction) -> StepResult:
    if action.player != state.active_player_id:
        return _illegal("Not your turn.")
    combat = state.combat
    if state.phase != "work_attack" or combat is None:
        return _illegal("Attackers are declared during Work (attack).")
    inst = state.active_player.find(action.instance_id, "field")
    if inst is not None and action.instance_id in combat.attackers:
        combat.attackers.remove(action.instance_id)
        inst.attacking = False
        record(state, "ATTACKER_WITHDRAWN", player=action.player, instance_id=action.instance_id)
        return StepResult(ok=True, events=[])
    if inst is None or not can_attack(state, action.instance_id):
        return _illegal("This job cannot attack.")
    combat.attackers.append(action.instance_id)
    inst.attacking = True
    record(state, "ATTACKER_DECLARED", player=action.player, instance_id=action.instance_id)
    return StepResult(ok=True, events=[])


def _confirm_attackers(state: GameState, action: ConfirmAttackersAction) -> StepResult:
    if action.player != state.active_player_id:
        return _illegal("Not your turn.")
    combat = state.combat
    if state.phase != "work_attack" or combat is None:
        return _illegal("No attack to confirm.")
    if not combat.attackers:
        state.combat = None
        record(state, "COMBAT_SKIPPED", player=action.player)
        _enter_phase(state, "end")
        return StepResult(ok=True, events=[])
    for instance_id in combat.attackers:
        inst = state.active_player.find(instance_id, "field")
        if inst is not None:
            inst.tapped = True
    record(state, "ATTACK_CONFIRMED", player=action.player, attackers=list(combat.attackers))
    _enter_phase(state, "work_block")
    return StepResult(ok=True, events=[])


def _assign_blocker(state: GameState, action: AssignBlockerAction) -> StepResult:
    defender_id = state.opponent_id(state.active_player_id)
    if action.player != defender_id:
        return _illegal("Only the defending player blocks.")
    combat = state.combat
    if state.phase != "work_block" or combat is None:
        return _illegal("Blockers are assigned during Work (block).")
    if not can_block(state, action.blocker_id, action.attacker_id):
        return _illegal("Illegal block.")
    blocker = state.inactive_player.find(action.blocker_id, "field")
    assert blocker is not None
    combat.blockers[action.attacker_id] = action.blocker_id
    blocker.blocking = True
    record(state, "BLOCKER_ASSIGNED", player=defender_id, blocker=action.blocker_id, attacker=action.attacker_id)
    return StepResult(ok=True, events=[])


def _confirm_blockers(state: GameState, action: ConfirmBlockersAction) -> StepResult:
    if action.player != state.opponent_id(state.active_player_id):
        return _illegal("Only the defending player confirms blocks.")
    if state.phase != "work_block" or state.combat is None:
        return _illegal("No blocks to confirm.")
    record(state, "BLOCKS_CONFIRMED", player=action.player, blocks=dict(state.combat.blockers))
    _enter_phase(state, "work_damage")
    return StepResult(ok=True, events=[])


def _resolve_combat(state: GameState, action: ResolveCombatAction) -> StepResult:
    if action.player != state.active_player_id:
        return _illegal("Not your turn.")
    if state.phase != "work_damage" or state.combat is None:
        return _illegal("No combat to resolve.")
    resolve_combat(state)
    for inst in state.field_cards():
        inst.attacking = False
        inst.blocking = False
    state.combat = None
    _enter_phase(state, "end")
    return StepResult(ok=True, events=[])


def _end_turn(state: GameState, action: EndTurnAction) -> StepResult:
    if action.player != state.active_player_id:
        return _illegal("Not your turn.")
    if state.phase != "end":
        return _illegal("The turn can only end from the End phase.")
    _finish_turn(state)
    return StepResult(ok=True, events=[])


def _force_end_turn(state: GameState, action: ForceEndTurnAction) -> StepResult:
    if action.player != state.active_player_id:
        return _illegal("Not your turn.")
    if state.phase == "mulligan":
        return _illegal("The match has not started.")
    if state.pending_effect is not None:
        effects.cancel(state)
    state.combat = None
    record(state, "TURN_TIMED_OUT", player=action.player)
    _enter_phase(state, "end")
    _finish_turn(state)
    return StepResult(ok=True, events=[])


def _resolve_target(state: GameState, action: ResolveTargetAction) -> StepResult:
    pending = state.pending_effect
    if pending is None:
        return _illegal("No effect is waiting for a target.")
    if action.player != pending.owner_id:
        return _illegal("Not your effect.")
    err = effects.resolve_target(state, action.instance_id)
    if err is not None:
        return _illegal(err)
    return StepResult(ok=True, events=[])


def _cancel_effect(state: GameState, action: CancelEffectAction) -> StepResult:
    pending = state.pending_effect
    if pending is None:
        return _illegal("No effect to cancel.")
    if action.player != pending.owner_id:
        return _illegal("Not your effect.")
    effects.cancel(state)
    return StepResult(ok=True, events=[])


_HANDLERS: dict[type, Callable[[GameState, Action], StepResult]] = {
    MulliganAction: _mulligan,  # type: ignore[dict-item]
    PlayCardAction: _play_card,  # type: ignore[dict-item]
    AdvancePhaseAction: _advance_phase,  # type: ignore[dict-item]
    DeclareAttackerAction: _declare_attacker,  # type: ignore[dict-item]
    ConfirmAttackersAction: _confirm_attackers,  # type: ignore[dict-item]
    AssignBlockerAction: _assign_blocker,  # type: ignore[dict-item]
    ConfirmBlockersAction: _confirm_blockers,  # type: ignore[dict-item]
    ResolveCombatAction: _resolve_combat,  # type: ignore[dict-item]
    EndTurnAction: _end_turn,  # type: ignore[dict-item]
    ForceEndTurnAction: _force_end_turn,  # type: ignore[dict-item]
    ResolveTargetAction: _resolve_target,  # type: ignore[dict-item]
    CancelEffectAction: _cancel_effect,  # type: ignore[dict-item]
}


def step(state: GameState, action: Action) -> StepResult:
    """Apply a single action to the match state.

    Every handler validates before touching anything, so a rejected action
    leaves the state exactly as it was. Deterministic for a given
    (seed, decks, action sequence).
    """
    if state.winner is not None:
        return StepResult(ok=False, events=[], error="Match already ended.", code="terminal_state")
    if state.pending_effect is not None and not isinstance(action, PENDING_EFFECT_ACTIONS):
        return _illegal("Resolve or cancel the pending effect first.")
    handler = _HANDLERS.get(type(action))
    if handler is None:
        return _illegal("Unknown action.")

    mark = len(state.event_log)
    result = handler(state, action)
    if result.ok:
        # Only applied actions are kept; replaying them rebuilds the match.
        state.action_log.append(action)
        result.events = state.event_log[mark:]
    return result


def _build_deck(cards: CardDatabase, owner_id: str, card_ids: Sequence[str], rng: random.Random) -> list[CardInstance]:
    ids = list(card_ids)
    for card_id in ids:
        if card_id not in cards:
            raise ValueError(f"Unknown card id in deck: {card_id}")
    rng.shuffle(ids)
    return [
        CardInstance(instance_id=f"{owner_id}-{i:03d}", card=cards.get(cid), owner_id=owner_id)
        for i, cid in enumerate(ids)
    ]


def new_match(
    cards: CardDatabase,
    deck1: Sequence[str],
    deck2: Sequence[str],
    seed: int,
    config: MatchConfig | None = None,
    *,
    names: tuple[str, str] = ("Joueur 1", "Joueur 2"),
    deck_ids: tuple[str, str] = ("", ""),
    is_ai_game: bool = False,
) -> GameState:
    """Shuffle both decks, deal opening hands and wait for mulligans.

    Decks are taken as already legal; only unknown card ids are refused.
    """
    cfg = config or MatchConfig()
    rng = random.Random(seed)
    game_id = str(uuid.UUID(int=rng.getrandbits(128)))

    p1 = PlayerState(id=PLAYER1_ID, name=names[0], reputation=cfg.starting_reputation, deck_id=deck_ids[0])
    p2 = PlayerState(id=PLAYER2_ID, name=names[1], reputation=cfg.starting_reputation, deck_id=deck_ids[1])
    p1.deck = _build_deck(cards, p1.id, deck1, rng)
    p2.deck = _build_deck(cards, p2.id, deck2, rng)

    state = GameState(
        cards=cards,
        config=cfg,
        seed=seed,
        rng=rng,
        game_id=game_id,
        player1=p1,
        player2=p2,
        is_ai_game=is_ai_game,
    )
    record(state, "GAME_STARTED", game_id=game_id)
    for _ in range(cfg.starting_hand):
        draw_cards(state, p1.id)
        draw_cards(state, p2.id)
    return state


def replay(
    cards: CardDatabase,
    deck1: Sequence[str],
    deck2: Sequence[str],
    seed: int,
    actions: Iterable[Action],
    config: MatchConfig | None = None,
) -> GameState:
    state = new_match(cards=cards, deck1=deck1, deck2=deck2, seed=seed, config=config)
    for a in actions:
        step(state, a)
        if state.winner is not None:
            break
    return state
