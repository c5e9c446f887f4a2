"""Deterministic, headless rules engine for JobWars.

IMPORTANT: This package must never import a UI toolkit.
"""

from .actions import (
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
from .ai import AI_PLAYER_ID, AIOpponent
from .match import new_match, replay, step
from .session import GameEngine
from .state import CardInstance, GameState, MatchConfig, Modifier, PlayerState, StepResult
from .types import CardDatabase, CardDefinition, CardType, GamePhase, Keyword, Rarity

__all__ = [
    "AI_PLAYER_ID",
    "AIOpponent",
    "AdvancePhaseAction",
    "AssignBlockerAction",
    "CancelEffectAction",
    "CardDatabase",
    "CardDefinition",
    "CardInstance",
    "CardType",
    "ConfirmAttackersAction",
    "ConfirmBlockersAction",
    "DeclareAttackerAction",
    "EndTurnAction",
    "ForceEndTurnAction",
    "GameEngine",
    "GamePhase",
    "GameState",
    "Keyword",
    "MatchConfig",
    "Modifier",
    "MulliganAction",
    "PlayCardAction",
    "PlayerState",
    "Rarity",
    "ResolveCombatAction",
    "ResolveTargetAction",
    "StepResult",
    "new_match",
    "replay",
    "step",
]
