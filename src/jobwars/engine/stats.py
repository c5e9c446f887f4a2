from __future__ import annotations

from .abilities import parse_card
from .state import CardInstance, GameState, PlayerState
from .types import Aura, Keyword


def keywords(inst: CardInstance) -> frozenset[Keyword]:
    if not inst.card.is_job:
        return frozenset()
    return parse_card(inst.card).keywords


def has_keyword(inst: CardInstance, kw: Keyword) -> bool:
    return kw in keywords(inst)


def _auras(state: GameState, inst: CardInstance) -> list[Aura]:
    """Auras from the owner's other field cards of the same domain."""
    owner = state.player(inst.owner_id)
    out: list[Aura] = []
    for other in owner.field:
        if other is inst or other.card.domain != inst.card.domain:
            continue
        aura = parse_card(other.card).aura
        if aura is not None:
            out.append(aura)
    return out


def effective_productivity(state: GameState, inst: CardInstance) -> int:
    value = inst.card.productivity + inst.construction_bonuses
    value += sum(m.productivity_delta for m in inst.modifiers)
    if inst.zone == "field":
        value += sum(a.productivity_delta for a in _auras(state, inst))
    return max(0, value)


def effective_resilience(state: GameState, inst: CardInstance) -> int:
    value = inst.card.resilience + inst.construction_bonuses
    value += sum(m.resilience_delta for m in inst.modifiers)
    if inst.zone == "field":
        value += sum(a.resilience_delta for a in _auras(state, inst))
    return max(0, value)


def effective_cost(state: GameState, player: PlayerState, inst: CardInstance) -> int:
    cost = inst.card.cost
    if inst.card.is_job:
        for other in player.field:
            if other.card.domain != inst.card.domain:
                continue
            aura = parse_card(other.card).aura
            if aura is not None:
                cost -= aura.cost_reduction
    return max(0, cost)
