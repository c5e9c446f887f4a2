"""Triggered effect resolution.

An ability becomes a PendingEffect: an ordered list of steps and a cursor.
Untargeted steps resolve as soon as the cursor reaches them. A targeted
step parks the cursor until its owner picks a target (or cancels). While a
PendingEffect exists the phase machine is locked.
"""

from __future__ import annotations

from collections.abc import Sequence

from .board import destroy_instance, draw_cards, move_instance, remove_broken
from .state import CardInstance, GameState, Modifier, PendingEffect, record
from .types import Effect

DAMAGE_LABEL = "Dégâts"
DEBUFF_LABEL = "Affaibli"
BUFF_LABEL = "Renforcé"


def _target_matches(step: Effect, owner_id: str, inst: CardInstance) -> bool:
    if inst.zone != "field" or not inst.card.is_job:
        return False
    if step.target_type == "enemy_field":
        ok = inst.owner_id != owner_id
    elif step.target_type == "ally_field":
        ok = inst.owner_id == owner_id
    else:
        ok = step.target_type == "any_field"
    if not ok:
        return False
    if step.type == "tap":
        return not inst.tapped
    return True


def is_valid_target(pending: PendingEffect | None, instance_id: str, state: GameState) -> bool:
    if pending is None:
        return False
    step = pending.current
    if step is None or not step.needs_target:
        return False
    inst = state.find_on_field(instance_id)
    return inst is not None and _target_matches(step, pending.owner_id, inst)


def valid_targets(state: GameState, pending: PendingEffect | None = None) -> list[CardInstance]:
    pending = pending or state.pending_effect
    if pending is None:
        return []
    step = pending.current
    if step is None or not step.needs_target:
        return []
    return [inst for inst in state.field_cards() if _target_matches(step, pending.owner_id, inst)]


def _repair(inst: CardInstance, amount: int) -> int:
    remaining = amount
    kept: list[Modifier] = []
    for mod in reversed(inst.modifiers):
        if remaining > 0 and mod.description == DAMAGE_LABEL and mod.resilience_delta < 0:
            healed = min(remaining, -mod.resilience_delta)
            remaining -= healed
            left = mod.resilience_delta + healed
            if left < 0:
                kept.append(Modifier(0, left, DAMAGE_LABEL, permanent=False))
            continue
        kept.append(mod)
    inst.modifiers[:] = list(reversed(kept))
    return amount - remaining


def apply_step(state: GameState, owner_id: str, step: Effect, target: CardInstance | None) -> None:
    if step.type == "draw":
        draw_cards(state, owner_id, step.amount)
        return
    if target is None:
        return

    record(
        state,
        "EFFECT_APPLIED",
        player=owner_id,
        effect=step.type,
        amount=step.amount,
        target=target.instance_id,
    )
    if step.type == "damage":
        target.modifiers.append(Modifier(0, -step.amount, DAMAGE_LABEL, permanent=False))
    elif step.type == "destroy":
        destroy_instance(state, target, reason="effect")
    elif step.type == "tap":
        target.tapped = True
    elif step.type == "debuff":
        target.modifiers.append(Modifier(-step.amount, -step.amount, DEBUFF_LABEL, permanent=False))
    elif step.type == "bounce":
        move_instance(state, target, "hand")
    elif step.type == "buff":
        target.modifiers.append(Modifier(step.amount, step.amount, BUFF_LABEL, permanent=True))
    elif step.type == "repair":
        _repair(target, step.amount)
    remove_broken(state)


def advance(state: GameState) -> None:
    """Run the cursor forward until a step needs a target or the effect is done."""
    pending = state.pending_effect
    while pending is not None and state.winner is None:
        step = pending.current
        if step is None:
            state.pending_effect = None
            record(state, "EFFECT_RESOLVED", player=pending.owner_id, source=pending.source_instance_id)
            return
        if not step.needs_target:
            apply_step(state, pending.owner_id, step, None)
            pending.current_index += 1
            continue
        if not valid_targets(state, pending):
            record(state, "EFFECT_FIZZLED", player=pending.owner_id, effect=step.type)
            pending.current_index += 1
            continue
        # Wait for resolve_target / cancel.
        return
    state.pending_effect = None


def begin(state: GameState, owner_id: str, source_instance_id: str, steps: Sequence[Effect]) -> None:
    if not steps:
        return
    state.pending_effect = PendingEffect(
        owner_id=owner_id,
        source_instance_id=source_instance_id,
        effects=tuple(steps),
    )
    advance(state)


def resolve_target(state: GameState, instance_id: str) -> str | None:
    """Apply the current step to instance_id. Returns an error message on rejection."""
    pending = state.pending_effect
    if pending is None:
        return "No effect is waiting for a target."
    if not is_valid_target(pending, instance_id, state):
        return "Invalid target."
    step = pending.current
    assert step is not None
    target = state.find_on_field(instance_id)
    apply_step(state, pending.owner_id, step, target)
    pending.current_index += 1
    advance(state)
    return None


def cancel(state: GameState) -> str | None:
    pending = state.pending_effect
    if pending is None:
        return "No effect to cancel."
    state.pending_effect = None
    record(
        state,
        "EFFECT_CANCELLED",
        player=pending.owner_id,
        source=pending.source_instance_id,
        skipped=len(pending.effects) - pending.current_index,
    )
    return None
