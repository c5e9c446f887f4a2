from __future__ import annotations

from jobwars.engine.actions import (
    AdvancePhaseAction,
    AssignBlockerAction,
    CancelEffectAction,
    ConfirmAttackersAction,
    ConfirmBlockersAction,
    DeclareAttackerAction,
    EndTurnAction,
    MulliganAction,
    PlayCardAction,
    ResolveCombatAction,
    ResolveTargetAction,
)
from jobwars.engine.combat import can_attack, can_block
from jobwars.engine.effects import valid_targets
from jobwars.engine.match import new_match, replay, step
from jobwars.engine.serialize import snapshot
from jobwars.engine.stats import effective_cost
from jobwars.paths import get_paths
from jobwars.services.content import ContentService


def _load_content():
    paths = get_paths()
    content = ContentService(paths.data_dir, paths.schema_dir)
    cards = content.load_cards_db()
    return cards, content.load_decks(cards)


def _choose_action(state) -> object:
    if state.phase == "mulligan":
        p = "player1" if not state.player1.mulligan_used else "player2"
        return MulliganAction(player=p, instance_ids=(state.player(p).hand[0].instance_id,))

    pending = state.pending_effect
    if pending is not None:
        targets = valid_targets(state)
        if targets:
            return ResolveTargetAction(player=pending.owner_id, instance_id=targets[0].instance_id)
        return CancelEffectAction(player=pending.owner_id)

    p = state.active_player_id
    ps = state.active_player
    combat = state.combat
    if state.phase == "hiring":
        for inst in ps.hand:
            if effective_cost(state, ps, inst) <= ps.budget_remaining:
                return PlayCardAction(player=p, instance_id=inst.instance_id)
        return AdvancePhaseAction(player=p)
    if state.phase == "work_attack":
        for inst in ps.field:
            if inst.instance_id not in combat.attackers and can_attack(state, inst.instance_id):
                return DeclareAttackerAction(player=p, instance_id=inst.instance_id)
        return ConfirmAttackersAction(player=p)
    if state.phase == "work_block":
        defender = state.inactive_player
        for attacker_id in combat.attackers:
            if combat.blocker_for(attacker_id) is not None:
                continue
            for b in defender.field:
                if can_block(state, b.instance_id, attacker_id):
                    return AssignBlockerAction(player=defender.id, blocker_id=b.instance_id, attacker_id=attacker_id)
        return ConfirmBlockersAction(player=defender.id)
    if state.phase == "work_damage":
        return ResolveCombatAction(player=p)
    return EndTurnAction(player=p)


def _check_invariants(state) -> None:
    seen: set[str] = set()
    for ps in state.players:
        assert ps.reputation >= 0
        for zone in ("deck", "hand", "field", "graveyard"):
            for inst in ps.zone(zone):
                assert inst.zone == zone
                assert inst.owner_id == ps.id
                assert inst.instance_id not in seen
                seen.add(inst.instance_id)
    assert (state.combat is not None) == (state.phase in ("work_attack", "work_block", "work_damage"))


def test_engine_determinism_replay() -> None:
    cards, decks = _load_content()
    deck1 = decks["starter-cyber-assault"].card_ids
    deck2 = decks["starter-batisseurs"].card_ids

    seed = 424242
    state1 = new_match(cards, deck1, deck2, seed=seed)

    actions = []
    for _ in range(300):
        if state1.winner is not None:
            break
        a = _choose_action(state1)
        actions.append(a)
        step(state1, a)
        _check_invariants(state1)

    assert state1.turn_number > 3
    snap1 = snapshot(state1)

    state2 = replay(cards, deck1, deck2, seed=seed, actions=actions)
    assert snapshot(state2) == snap1
    assert state2.event_log == state1.event_log

    # the action log holds only what was applied, and rebuilds the same match
    state3 = replay(cards, deck1, deck2, seed=seed, actions=list(state1.action_log))
    assert snapshot(state3) == snap1


def test_seed_drives_shuffle_and_game_id() -> None:
    cards, decks = _load_content()
    deck = decks["starter-batisseurs"].card_ids

    a = new_match(cards, deck, deck, seed=1)
    b = new_match(cards, deck, deck, seed=1)
    c = new_match(cards, deck, deck, seed=2)

    assert a.game_id == b.game_id
    assert [x.card.id for x in a.player1.deck] == [x.card.id for x in b.player1.deck]
    assert a.game_id != c.game_id
