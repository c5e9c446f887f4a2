from __future__ import annotations

import json
from collections.abc import Mapping
from functools import lru_cache

from jsonschema import Draft202012Validator
from jsonschema.exceptions import best_match

from ..paths import get_paths
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
from .state import CardInstance, Combat, GameState, PendingEffect, PlayerState


class ActionDecodeError(ValueError):
    pass


def action_to_dict(a: Action, action_id: str | None = None) -> dict[str, object]:
    """Wire form of an action: {"id", "type", "playerId", "data"}."""
    data: dict[str, object] = {}
    if isinstance(a, MulliganAction):
        kind = "mulligan"
        data = {"cardIds": list(a.instance_ids)}
    elif isinstance(a, PlayCardAction):
        kind = "play_card"
        data = {"instanceId": a.instance_id}
    elif isinstance(a, DeclareAttackerAction):
        kind = "declare_attacker"
        data = {"instanceId": a.instance_id}
    elif isinstance(a, ConfirmAttackersAction):
        kind = "confirm_attackers"
    elif isinstance(a, AssignBlockerAction):
        kind = "declare_blocker"
        data = {"blockerId": a.blocker_id, "attackerId": a.attacker_id}
    elif isinstance(a, ConfirmBlockersAction):
        kind = "confirm_blockers"
    elif isinstance(a, ResolveCombatAction):
        kind = "resolve_combat"
    elif isinstance(a, AdvancePhaseAction):
        kind = "advance_phase"
    elif isinstance(a, ResolveTargetAction):
        kind = "resolve_target"
        data = {"instanceId": a.instance_id}
    elif isinstance(a, CancelEffectAction):
        kind = "cancel_effect"
    elif isinstance(a, EndTurnAction):
        kind = "end_turn"
    elif isinstance(a, ForceEndTurnAction):
        kind = "force_end_turn"
    else:
        # should be unreachable
        kind = "unknown"
    out: dict[str, object] = {"type": kind, "playerId": a.player, "data": data}
    if action_id is not None:
        out["id"] = action_id
    return out


@lru_cache(maxsize=1)
def _action_validator() -> Draft202012Validator:
    path = get_paths().schema_dir / "action.schema.json"
    return Draft202012Validator(json.loads(path.read_text(encoding="utf-8")))


def action_from_dict(raw: Mapping[str, object]) -> tuple[Action, str | None]:
    """Decode a wire message. Returns the action and its logical id, if any."""
    err = best_match(_action_validator().iter_errors(raw))
    if err is not None:
        loc = "/".join(str(p) for p in err.absolute_path)
        raise ActionDecodeError(f"Invalid action message at '{loc}': {err.message}")

    kind = raw["type"]
    player = str(raw["playerId"])
    data = raw.get("data") or {}
    assert isinstance(data, Mapping)
    action_id = raw.get("id")

    action: Action
    if kind == "mulligan":
        action = MulliganAction(player=player, instance_ids=tuple(data.get("cardIds", [])))
    elif kind == "keep_hand":
        action = MulliganAction(player=player, instance_ids=())
    elif kind == "play_card":
        action = PlayCardAction(player=player, instance_id=str(data["instanceId"]))
    elif kind == "declare_attacker":
        action = DeclareAttackerAction(player=player, instance_id=str(data["instanceId"]))
    elif kind == "confirm_attackers":
        action = ConfirmAttackersAction(player=player)
    elif kind == "declare_blocker":
        action = AssignBlockerAction(
            player=player, blocker_id=str(data["blockerId"]), attacker_id=str(data["attackerId"])
        )
    elif kind == "confirm_blockers":
        action = ConfirmBlockersAction(player=player)
    elif kind == "resolve_combat":
        action = ResolveCombatAction(player=player)
    elif kind == "advance_phase":
        action = AdvancePhaseAction(player=player)
    elif kind == "resolve_target":
        action = ResolveTargetAction(player=player, instance_id=str(data["instanceId"]))
    elif kind == "cancel_effect":
        action = CancelEffectAction(player=player)
    elif kind == "end_turn":
        action = EndTurnAction(player=player)
    elif kind == "force_end_turn":
        action = ForceEndTurnAction(player=player)
    else:
        raise ActionDecodeError(f"Unknown action type: {kind}")
    return action, (str(action_id) if action_id is not None else None)


def _instance_to_dict(c: CardInstance) -> dict[str, object]:
    return {
        "instance_id": c.instance_id,
        "card_id": c.card.id,
        "zone": c.zone,
        "modifiers": [
            {
                "productivity_delta": m.productivity_delta,
                "resilience_delta": m.resilience_delta,
                "description": m.description,
                "permanent": m.permanent,
            }
            for m in c.modifiers
        ],
        "construction_bonuses": c.construction_bonuses,
        "attacking": c.attacking,
        "blocking": c.blocking,
        "tapped": c.tapped,
        "entered_turn": c.entered_turn,
    }


def _player_to_dict(p: PlayerState) -> dict[str, object]:
    return {
        "id": p.id,
        "name": p.name,
        "reputation": p.reputation,
        "budget_remaining": p.budget_remaining,
        "deck_id": p.deck_id,
        "mulligan_used": p.mulligan_used,
        "event_counters": p.event_counters,
        "deck": [_instance_to_dict(c) for c in p.deck],
        "hand": [_instance_to_dict(c) for c in p.hand],
        "field": [_instance_to_dict(c) for c in p.field],
        "graveyard": [_instance_to_dict(c) for c in p.graveyard],
    }


def _combat_to_dict(c: Combat | None) -> dict[str, object] | None:
    if c is None:
        return None
    return {"attackers": list(c.attackers), "blockers": dict(c.blockers)}


def _pending_to_dict(p: PendingEffect | None) -> dict[str, object] | None:
    if p is None:
        return None
    return {
        "owner_id": p.owner_id,
        "source_instance_id": p.source_instance_id,
        "effects": [{"type": e.type, "target_type": e.target_type, "amount": e.amount} for e in p.effects],
        "current_index": p.current_index,
    }


def snapshot(state: GameState) -> dict[str, object]:
    """Return a JSON-serializable canonical snapshot of the current match state."""
    return {
        "game_id": state.game_id,
        "seed": state.seed,
        "turn_number": state.turn_number,
        "active_player_id": state.active_player_id,
        "phase": state.phase,
        "winner": state.winner,
        "is_ai_game": state.is_ai_game,
        "players": [_player_to_dict(p) for p in state.players],
        "combat": _combat_to_dict(state.combat),
        "pending_effect": _pending_to_dict(state.pending_effect),
        "action_log": [action_to_dict(a) for a in state.action_log],
    }


def game_result(state: GameState) -> dict[str, object]:
    """Terminal payload for the stats recorder."""
    return {
        "game_id": state.game_id,
        "winner": state.winner,
        "turn_number": state.turn_number,
        "is_ai_game": state.is_ai_game,
        "players": [
            {"id": p.id, "name": p.name, "deck_id": p.deck_id, "final_reputation": p.reputation}
            for p in state.players
        ],
    }
