from __future__ import annotations

from jobwars.engine.actions import (
    AdvancePhaseAction,
    AssignBlockerAction,
    ConfirmAttackersAction,
    ConfirmBlockersAction,
    DeclareAttackerAction,
    EndTurnAction,
    MulliganAction,
    PlayCardAction,
    ResolveCombatAction,
)
from jobwars.engine import sandbox
from jobwars.engine.combat import can_attack, can_block
from jobwars.engine.effects import DAMAGE_LABEL
from jobwars.engine.match import new_match, step
from jobwars.engine.state import CardInstance, Modifier
from jobwars.engine.stats import effective_cost, effective_productivity, effective_resilience
from jobwars.paths import get_paths
from jobwars.services.content import ContentService


def _load_cards():
    paths = get_paths()
    content = ContentService(paths.data_dir, paths.schema_dir)
    return content.load_cards_db()


def _started(cards, seed=1):
    deck = ["cr-001"] * 30
    state = new_match(cards, deck, deck, seed=seed)
    assert step(state, MulliganAction(player="player1")).ok
    assert step(state, MulliganAction(player="player2")).ok
    return state


def _place(state, player_id, card_id, zone="field"):
    ps = state.player(player_id)
    n = sum(len(ps.zone(z)) for z in ("deck", "hand", "field", "graveyard"))
    inst = CardInstance(
        instance_id=f"{player_id}-t{n:02d}", card=state.cards.get(card_id), owner_id=player_id, zone=zone
    )
    ps.zone(zone).append(inst)
    return inst


def _attack(state, *attackers) -> None:
    assert step(state, AdvancePhaseAction(player="player1")).ok
    for a in attackers:
        assert step(state, DeclareAttackerAction(player="player1", instance_id=a.instance_id)).ok
    assert step(state, ConfirmAttackersAction(player="player1")).ok
    assert state.phase == "work_block"


def _block(state, blocker, attacker):
    return step(
        state,
        AssignBlockerAction(player="player2", blocker_id=blocker.instance_id, attacker_id=attacker.instance_id),
    )


def _finish_combat(state) -> None:
    assert step(state, ConfirmBlockersAction(player="player2")).ok
    assert step(state, ResolveCombatAction(player="player1")).ok


def _last_damage(state):
    return [e for e in state.event_log if e["type"] == "COMBAT_DAMAGE"][-1]


def test_unblocked_attack_is_lethal_and_clamps() -> None:
    cards = _load_cards()
    state = _started(cards)
    atk = _place(state, "player1", "po-001")
    state.player2.reputation = 1

    _attack(state, atk)
    _finish_combat(state)

    assert state.player2.reputation == 0
    assert state.winner == "player1"
    assert any(e["type"] == "GAME_ENDED" for e in state.event_log)


def test_damage_equal_to_resilience_destroys() -> None:
    cards = _load_cards()
    state = _started(cards)
    atk = _place(state, "player1", "po-003")  # 3/3
    blk = _place(state, "player2", "po-002")  # 2/3

    _attack(state, atk)
    assert _block(state, blk, atk).ok
    _finish_combat(state)

    assert blk.zone == "graveyard"
    assert atk.zone == "field"
    assert state.player2.reputation == 20


def test_first_strike_kills_before_the_blocker_strikes() -> None:
    cards = _load_cards()
    state = _started(cards)
    atk = _place(state, "player1", "it-005")  # 4/3, Première Frappe
    blk = _place(state, "player2", "po-002")  # 2/3

    _attack(state, atk)
    assert _block(state, blk, atk).ok
    _finish_combat(state)

    assert blk.zone == "graveyard"
    assert atk.zone == "field"
    ev = _last_damage(state)
    assert ev["to_attacker"] == 0
    assert ev["to_blocker"] == 4


def test_first_strike_that_does_not_kill_trades_simultaneously() -> None:
    cards = _load_cards()
    state = _started(cards)
    atk = _place(state, "player1", "cr-002")  # 2/1, Première Frappe
    blk = _place(state, "player2", "po-002")  # 2/3

    _attack(state, atk)
    assert _block(state, blk, atk).ok
    _finish_combat(state)

    assert atk.zone == "graveyard"
    assert blk.zone == "field"


def test_first_strike_blocker() -> None:
    cards = _load_cards()
    state = _started(cards)
    atk = _place(state, "player1", "po-001")  # 2/1
    blk = _place(state, "player2", "cr-002")  # 2/1, Première Frappe

    _attack(state, atk)
    assert _block(state, blk, atk).ok
    _finish_combat(state)

    assert atk.zone == "graveyard"
    assert blk.zone == "field"


def test_haste_bypasses_summoning_sickness() -> None:
    cards = _load_cards()
    state = _started(cards)
    quick = _place(state, "player1", "it-003", zone="hand")
    slow = _place(state, "player1", "cr-001", zone="hand")
    state.player1.budget_remaining = 10
    assert step(state, PlayCardAction(player="player1", instance_id=quick.instance_id)).ok
    assert step(state, PlayCardAction(player="player1", instance_id=slow.instance_id)).ok
    assert step(state, AdvancePhaseAction(player="player1")).ok

    assert can_attack(state, quick.instance_id)
    assert not can_attack(state, slow.instance_id)
    res = step(state, DeclareAttackerAction(player="player1", instance_id=slow.instance_id))
    assert not res.ok
    assert step(state, DeclareAttackerAction(player="player1", instance_id=quick.instance_id)).ok


def test_aerial_attackers_need_reach() -> None:
    cards = _load_cards()
    state = _started(cards)
    flyer = _place(state, "player1", "it-009")  # Aérien
    ground = _place(state, "player2", "po-002")
    reach = _place(state, "player2", "it-004")  # Portée

    _attack(state, flyer)
    assert can_block(state, ground.instance_id)
    assert not can_block(state, ground.instance_id, flyer.instance_id)
    assert not _block(state, ground, flyer).ok
    assert _block(state, reach, flyer).ok


def test_each_blocker_and_attacker_is_used_once() -> None:
    cards = _load_cards()
    state = _started(cards)
    a = _place(state, "player1", "po-001")
    b = _place(state, "player1", "po-001")
    blk = _place(state, "player2", "po-002")
    other = _place(state, "player2", "po-003")

    _attack(state, a, b)
    assert _block(state, blk, a).ok
    assert not _block(state, blk, b).ok
    assert not _block(state, other, a).ok
    assert _block(state, other, b).ok
    assert state.combat is not None
    assert state.combat.blockers == {a.instance_id: blk.instance_id, b.instance_id: other.instance_id}


def test_tapped_jobs_cannot_block_and_untap_at_end_of_turn() -> None:
    cards = _load_cards()
    state = _started(cards)
    atk = _place(state, "player1", "po-001")
    blk = _place(state, "player2", "po-002")
    blk.tapped = True

    _attack(state, atk)
    assert atk.tapped
    assert not _block(state, blk, atk).ok
    _finish_combat(state)
    assert step(state, EndTurnAction(player="player1")).ok

    assert not atk.tapped
    assert not blk.tapped


def test_combat_stops_once_a_winner_is_known() -> None:
    cards = _load_cards()
    state = _started(cards)
    first = _place(state, "player1", "po-001")
    second = _place(state, "player1", "cr-001")
    state.player2.reputation = 2

    _attack(state, first, second)
    _finish_combat(state)

    assert state.winner == "player1"
    hits = [e for e in state.event_log if e["type"] == "REPUTATION_LOST"]
    assert len(hits) == 1
    assert hits[0]["source"] == first.instance_id


def test_construction_grows_at_each_budget_phase() -> None:
    cards = _load_cards()
    state = _started(cards)
    mason = _place(state, "player1", "up-002")  # 2/2, Construction

    for p in ("player1", "player2"):
        assert step(state, AdvancePhaseAction(player=p)).ok
        assert step(state, ConfirmAttackersAction(player=p)).ok
        assert step(state, EndTurnAction(player=p)).ok

    assert state.turn_number == 3
    assert mason.construction_bonuses == 1
    assert effective_productivity(state, mason) == 3
    assert effective_resilience(state, mason) == 3
    assert any(e["type"] == "CONSTRUCTION" for e in state.event_log)


def test_same_domain_auras() -> None:
    cards = _load_cards()
    state = _started(cards)
    junior = _place(state, "player1", "it-001")  # 1/1
    director = _place(state, "player1", "it-008")  # other IT jobs +1 Résilience
    _place(state, "player1", "it-024")  # other IT jobs +1 Productivité
    cop = _place(state, "player1", "po-001")

    assert effective_resilience(state, junior) == 2
    assert effective_productivity(state, junior) == 2
    assert effective_resilience(state, director) == 5
    assert effective_productivity(state, director) == 6
    assert effective_resilience(state, cop) == 1

    _place(state, "player1", "up-003")  # same-domain jobs cost 1 less
    mason = _place(state, "player1", "up-002", zone="hand")
    apprentice = _place(state, "player1", "cr-001", zone="hand")
    assert effective_cost(state, state.player1, mason) == 1
    assert effective_cost(state, state.player1, apprentice) == 1


def test_losing_an_aura_in_combat_destroys_a_damaged_ally() -> None:
    cards = _load_cards()
    state = _started(cards)
    atk = _place(state, "player1", "it-006")  # 5/4
    director = _place(state, "player2", "it-008")  # 5/5, other IT jobs +1 Résilience
    junior = _place(state, "player2", "it-001")  # 1/1
    junior.modifiers.append(Modifier(0, -1, DAMAGE_LABEL))
    assert effective_resilience(state, junior) == 1

    _attack(state, atk)
    assert _block(state, director, atk).ok
    _finish_combat(state)

    assert director.zone == "graveyard"
    assert junior.zone == "graveyard"
    assert any(
        e["type"] == "CARD_DESTROYED" and e["instance_id"] == junior.instance_id and e["reason"] == "no_resilience"
        for e in state.event_log
    )


def test_confirmed_block_holds_after_the_blocker_leaves() -> None:
    cards = _load_cards()
    state = _started(cards)
    atk = _place(state, "player1", "it-006")  # 5/4
    wall = _place(state, "player2", "po-002")  # 2/3

    _attack(state, atk)
    assert _block(state, wall, atk).ok
    assert step(state, ConfirmBlockersAction(player="player2")).ok
    assert sandbox.destroy_card_manual(state, wall.instance_id).ok
    assert state.combat is not None
    assert state.combat.blockers == {atk.instance_id: wall.instance_id}

    assert step(state, ResolveCombatAction(player="player1")).ok
    assert state.player2.reputation == 20
    assert atk.zone == "field"


def test_unconfirmed_block_is_dropped_when_the_blocker_leaves() -> None:
    cards = _load_cards()
    state = _started(cards)
    atk = _place(state, "player1", "po-001")  # 2/1
    wall = _place(state, "player2", "po-002")

    _attack(state, atk)
    assert _block(state, wall, atk).ok
    assert sandbox.destroy_card_manual(state, wall.instance_id).ok
    assert state.combat.blockers == {}

    _finish_combat(state)
    assert state.player2.reputation == 18


def test_construction_growth_survives_a_bounce_but_not_destruction() -> None:
    cards = _load_cards()
    state = _started(cards)
    mason = _place(state, "player1", "up-002")  # 2/2, Construction
    mason.construction_bonuses = 2

    assert sandbox.move_card(state, mason.instance_id, "hand").ok
    assert mason.construction_bonuses == 2

    assert sandbox.move_card(state, mason.instance_id, "field").ok
    assert effective_productivity(state, mason) == 4
    assert sandbox.destroy_card_manual(state, mason.instance_id).ok
    assert mason.construction_bonuses == 0
