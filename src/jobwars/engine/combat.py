from __future__ import annotations

from .board import damage_player, destroy_instance, remove_broken
from .state import CardInstance, GameState, record
from .stats import effective_productivity, effective_resilience, has_keyword


def _attack_ready(state: GameState, inst: CardInstance) -> bool:
    if not inst.card.is_job or inst.zone != "field" or inst.tapped:
        return False
    # Summoning sickness: a job may attack from the turn after it was hired.
    return inst.entered_turn < state.turn_number or has_keyword(inst, "Haste")


def can_attack(state: GameState, instance_id: str) -> bool:
    if state.winner is not None or state.pending_effect is not None:
        return False
    if state.phase != "work_attack" or state.combat is None:
        return False
    inst = state.active_player.find(instance_id, "field")
    return inst is not None and _attack_ready(state, inst)


def blocks_allowed(blocker: CardInstance, attacker: CardInstance) -> bool:
    if has_keyword(attacker, "Aerial") and not has_keyword(blocker, "Reach"):
        return False
    return True


def can_block(state: GameState, blocker_id: str, attacker_id: str | None = None) -> bool:
    """Whether blocker_id may block now; with attacker_id, whether it may block that attacker."""
    if state.winner is not None or state.pending_effect is not None:
        return False
    combat = state.combat
    if state.phase != "work_block" or combat is None:
        return False
    blocker = state.inactive_player.find(blocker_id, "field")
    if blocker is None or not blocker.card.is_job or blocker.tapped:
        return False
    if combat.is_blocking(blocker_id):
        return False
    if attacker_id is None:
        return True
    if attacker_id not in combat.attackers or combat.blocker_for(attacker_id) is not None:
        return False
    attacker = state.active_player.find(attacker_id, "field")
    return attacker is not None and blocks_allowed(blocker, attacker)


def _fight(state: GameState, attacker: CardInstance, blocker: CardInstance) -> None:
    a_prod = effective_productivity(state, attacker)
    a_res = effective_resilience(state, attacker)
    b_prod = effective_productivity(state, blocker)
    b_res = effective_resilience(state, blocker)
    a_first = has_keyword(attacker, "FirstStrike")
    b_first = has_keyword(blocker, "FirstStrike")

    to_blocker = a_prod
    to_attacker = b_prod
    if a_first and not b_first:
        if a_prod >= b_res:
            to_attacker = 0
    elif b_first and not a_first:
        if b_prod >= a_res:
            to_blocker = 0

    record(
        state,
        "COMBAT_DAMAGE",
        attacker=attacker.instance_id,
        blocker=blocker.instance_id,
        to_attacker=to_attacker,
        to_blocker=to_blocker,
    )
    if to_blocker > 0 and to_blocker >= b_res:
        destroy_instance(state, blocker, reason="combat")
    if to_attacker > 0 and to_attacker >= a_res:
        destroy_instance(state, attacker, reason="combat")


def resolve_combat(state: GameState) -> None:
    """Apply combat damage for every declared attacker, in declaration order.

    Unblocked attackers hit the defending player. Blocked attackers only
    fight their blocker, even if the blocker has left the field.
    Resolution stops as soon as a winner is known.
    """
    combat = state.combat
    if combat is None:
        return
    defender_id = state.opponent_id(state.active_player_id)
    assignments = dict(combat.blockers)
    for attacker_id in list(combat.attackers):
        if state.winner is not None:
            break
        attacker = state.active_player.find(attacker_id, "field")
        if attacker is None:
            continue
        blocker_id = assignments.get(attacker_id)
        if blocker_id is None:
            damage_player(state, defender_id, effective_productivity(state, attacker), source=attacker_id)
            continue
        blocker = state.player(defender_id).find(blocker_id, "field")
        if blocker is None:
            continue
        _fight(state, attacker, blocker)
    # Losing an aura in combat can leave an ally with no resilience.
    remove_broken(state)
