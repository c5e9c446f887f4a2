from __future__ import annotations

from .abilities import parse_card
from .state import CardInstance, GameState, record
from .stats import effective_resilience
from .types import Zone


def move_instance(state: GameState, inst: CardInstance, to_zone: Zone, *, to_bottom: bool = False) -> None:
    """Move a card between its owner's zones. The top of the deck is the end of the list."""
    owner = state.player(inst.owner_id)
    src = owner.zone(inst.zone)
    for i, other in enumerate(src):
        if other is inst:
            del src[i]
            break

    # Confirmed blocks stand: a blocked attacker stays blocked once damage is due.
    if inst.zone == "field" and state.combat is not None and state.phase != "work_damage":
        combat = state.combat
        if inst.instance_id in combat.attackers:
            combat.attackers.remove(inst.instance_id)
        combat.blockers = {
            a: b for a, b in combat.blockers.items() if inst.instance_id not in (a, b)
        }

    from_zone = inst.zone
    inst.reset_transient()
    if to_zone == "graveyard":
        inst.construction_bonuses = 0
    if to_zone == "field":
        inst.entered_turn = state.turn_number

    dest = owner.zone(to_zone)
    if to_bottom:
        dest.insert(0, inst)
    else:
        dest.append(inst)
    inst.zone = to_zone
    if from_zone != to_zone:
        record(
            state,
            "CARD_MOVED",
            player=owner.id,
            instance_id=inst.instance_id,
            card_id=inst.card.id,
            from_zone=from_zone,
            to_zone=to_zone,
        )


def draw_cards(state: GameState, player_id: str, count: int = 1) -> int:
    """Draw up to count cards. An empty deck is not an error."""
    ps = state.player(player_id)
    drawn = 0
    for _ in range(max(0, count)):
        if not ps.deck:
            break
        inst = ps.deck.pop()
        inst.zone = "hand"
        ps.hand.append(inst)
        drawn += 1
        record(state, "CARD_DRAWN", player=player_id, instance_id=inst.instance_id)
    return drawn


def destroy_instance(state: GameState, inst: CardInstance, reason: str) -> None:
    if inst.zone != "field":
        return
    move_instance(state, inst, "graveyard")
    record(
        state,
        "CARD_DESTROYED",
        player=inst.owner_id,
        instance_id=inst.instance_id,
        card_id=inst.card.id,
        reason=reason,
    )
    for step in parse_card(inst.card).on_destroyed:
        if step.type == "draw":
            draw_cards(state, inst.owner_id, step.amount)


def damage_player(state: GameState, player_id: str, amount: int, source: str | None = None) -> int:
    if amount <= 0:
        return 0
    ps = state.player(player_id)
    dealt = min(ps.reputation, amount)
    ps.reputation -= dealt
    record(state, "REPUTATION_LOST", player=player_id, amount=amount, dealt=dealt, source=source)
    check_winner(state)
    return dealt


def check_winner(state: GameState) -> None:
    if state.winner is not None:
        return
    for ps in state.players:
        if ps.reputation < 0:
            ps.reputation = 0
        if ps.reputation == 0:
            state.winner = state.opponent_id(ps.id)
            record(state, "GAME_ENDED", winner=state.winner, loser=ps.id)
            return


def remove_broken(state: GameState) -> None:
    """Destroy field jobs left with no resilience."""
    while True:
        broken = [
            inst
            for inst in state.field_cards()
            if inst.card.is_job and effective_resilience(state, inst) <= 0
        ]
        if not broken:
            return
        for inst in broken:
            destroy_instance(state, inst, reason="no_resilience")
