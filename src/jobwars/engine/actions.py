from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class MulliganAction:
    player: str
    instance_ids: tuple[str, ...] = ()


@dataclass(frozen=True)
class PlayCardAction:
    player: str
    instance_id: str


@dataclass(frozen=True)
class DeclareAttackerAction:
    player: str
    instance_id: str


@dataclass(frozen=True)
class ConfirmAttackersAction:
    player: str


@dataclass(frozen=True)
class AssignBlockerAction:
    player: str
    blocker_id: str
    attacker_id: str


@dataclass(frozen=True)
class ConfirmBlockersAction:
    player: str


@dataclass(frozen=True)
class ResolveCombatAction:
    player: str


@dataclass(frozen=True)
class AdvancePhaseAction:
    player: str


@dataclass(frozen=True)
class ResolveTargetAction:
    player: str
    instance_id: str


@dataclass(frozen=True)
class CancelEffectAction:
    player: str


@dataclass(frozen=True)
class EndTurnAction:
    player: str


@dataclass(frozen=True)
class ForceEndTurnAction:
    """Issued by an external turn timer; accepted from any phase."""

    player: str


Action = (
    MulliganAction
    | PlayCardAction
    | DeclareAttackerAction
    | ConfirmAttackersAction
    | AssignBlockerAction
    | ConfirmBlockersAction
    | ResolveCombatAction
    | AdvancePhaseAction
    | ResolveTargetAction
    | CancelEffectAction
    | EndTurnAction
    | ForceEndTurnAction
)

# Actions still accepted while a pending effect holds the engine.
PENDING_EFFECT_ACTIONS = (ResolveTargetAction, CancelEffectAction, ForceEndTurnAction)
