from __future__ import annotations

from jobwars.engine.actions import AdvancePhaseAction, MulliganAction
from jobwars.engine.session import GameEngine
from jobwars.engine.state import Modifier
from jobwars.paths import get_paths
from jobwars.services.content import ContentService
from jobwars.services.telemetry import TelemetryService


def _load_cards():
    paths = get_paths()
    content = ContentService(paths.data_dir, paths.schema_dir)
    return content.load_cards_db()


def _engine(telemetry=None, **kwargs):
    engine = GameEngine(_load_cards(), telemetry=telemetry, **kwargs)
    deck = ["cr-001"] * 30
    engine.start_game(deck, deck, seed=11, deck_ids=("starter-a", "starter-b"))
    return engine


def test_subscribers_see_every_applied_action() -> None:
    engine = _engine()
    seen = []
    unsubscribe = engine.subscribe(lambda s: seen.append(s.phase))

    assert engine.mulligan("player1", []).ok
    assert engine.mulligan("player2", []).ok
    assert seen == ["mulligan", "hiring"]

    # rejected actions do not emit
    assert not engine.end_turn().ok
    assert len(seen) == 2

    unsubscribe()
    assert engine.advance_phase().ok
    assert len(seen) == 2


def test_a_failing_subscriber_does_not_break_the_action(caplog) -> None:
    engine = _engine()
    seen = []

    def broken(state) -> None:
        raise RuntimeError("render failed")

    engine.subscribe(broken)
    engine.subscribe(lambda s: seen.append(s.phase))

    with caplog.at_level("ERROR", logger="jobwars.engine.session"):
        res = engine.mulligan("player1", [])

    assert res.ok
    assert seen == ["mulligan"]
    assert "state listener" in caplog.text


def test_no_match_in_progress() -> None:
    engine = GameEngine(_load_cards())
    res = engine.advance_phase()
    assert not res.ok
    assert res.code == "illegal_action"
    assert not engine.can_attack("player1-000")


def test_apply_is_idempotent_per_action_id() -> None:
    engine = _engine()
    first = engine.apply(MulliganAction(player="player1"), action_id="m-1")
    again = engine.apply(MulliganAction(player="player1"), action_id="m-1")

    assert first.ok
    assert again is first
    assert len(engine.state.action_log) == 1


def test_only_recent_action_ids_are_remembered() -> None:
    engine = _engine(ack_cache_size=2)
    first = engine.apply(MulliganAction(player="player1"), action_id="m-1")
    second = engine.apply(MulliganAction(player="player2"), action_id="m-2")
    assert engine.apply(AdvancePhaseAction(player="player1"), action_id="a-1").ok

    assert engine.apply(MulliganAction(player="player2"), action_id="m-2") is second
    # m-1 has been forgotten, so it is applied again and refused
    again = engine.apply(MulliganAction(player="player1"), action_id="m-1")
    assert first.ok
    assert again is not first
    assert not again.ok
    assert len(engine.state.action_log) == 3


def test_apply_message_decodes_wire_actions() -> None:
    engine = _engine()
    res = engine.apply_message({"id": "a1", "type": "keep_hand", "playerId": "player1"})
    assert res.ok
    res = engine.apply_message({"id": "a2", "type": "mulligan", "playerId": "player2", "data": {"cardIds": []}})
    assert res.ok
    assert engine.state.phase == "hiring"

    card = engine.state.player1.hand[0].instance_id
    msg = {"id": "a3", "type": "play_card", "playerId": "player1", "data": {"instanceId": card}}
    assert engine.apply_message(msg).ok
    # a retransmission is acknowledged, not replayed
    assert engine.apply_message(msg).ok
    assert len(engine.state.player1.field) == 1


def test_malformed_messages_are_rejected() -> None:
    engine = _engine()
    for raw in (
        {"type": "play_card", "playerId": "player1", "data": {}},
        {"type": "shuffle_everything", "playerId": "player1"},
        {"type": "end_turn"},
    ):
        res = engine.apply_message(raw)
        assert not res.ok
        assert res.code == "illegal_action"
    assert engine.state.action_log == []


def test_game_result_is_recorded_once(tmp_path) -> None:
    telemetry = TelemetryService(tmp_path / "telemetry.jsonl")
    engine = _engine(telemetry)
    assert engine.mulligan("player1", []).ok
    assert engine.mulligan("player2", []).ok

    assert engine.adjust_reputation("player2", -20).ok
    assert engine.state.winner == "player1"

    res = engine.adjust_reputation("player2", 5)
    assert not res.ok
    assert res.code == "terminal_state"

    records = telemetry.read("game_result")
    assert len(records) == 1
    payload = records[0]["payload"]
    assert payload["winner"] == "player1"
    assert payload["game_id"] == engine.state.game_id
    assert [p["final_reputation"] for p in payload["players"]] == [20, 0]
    assert [p["deck_id"] for p in payload["players"]] == ["starter-a", "starter-b"]


def test_manual_overrides() -> None:
    engine = _engine()
    assert engine.mulligan("player1", []).ok
    assert engine.mulligan("player2", []).ok
    state = engine.state

    assert engine.adjust_budget("player1", 3).ok
    assert state.player1.budget_remaining == 4
    assert engine.draw_extra_cards("player2", 2).ok
    assert len(state.player2.hand) == 7

    card = state.player1.hand[0]
    assert engine.move_card(card.instance_id, "field").ok
    assert card.zone == "field"
    assert not engine.move_card(card.instance_id, "field").ok

    assert engine.add_modifier(card.instance_id, Modifier(2, 0, "Prime")).ok
    assert engine.get_effective_productivity(card) == 3
    assert engine.destroy_card_manual(card.instance_id).ok
    assert card.zone == "graveyard"

    deck_before = [c.instance_id for c in state.player1.deck]
    assert engine.shuffle_deck("player1").ok
    assert sorted(c.instance_id for c in state.player1.deck) == sorted(deck_before)


def test_queries() -> None:
    engine = _engine()
    assert engine.mulligan("player1", []).ok
    assert engine.mulligan("player2", []).ok
    state = engine.state

    card = state.player1.hand[0]
    assert engine.get_active_player() is state.player1
    assert engine.get_inactive_player() is state.player2
    assert engine.can_play_card(card.instance_id)
    assert not engine.can_play_card(state.player2.hand[0].instance_id)

    assert engine.play_card(card.instance_id).ok
    assert not engine.can_play_card(state.player1.hand[0].instance_id)
    assert engine.advance_phase().ok
    assert not engine.can_attack(card.instance_id)
    assert not engine.is_attacking(card.instance_id)
