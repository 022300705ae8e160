from __future__ import annotations

import pytest

from pokebattle.battle.validator import require_actions, valid_actions
from pokebattle.core.actions import Continue, Forfeit, Struggle, Switch, UseMove
from pokebattle.core.codec import session_to_dict
from pokebattle.core.errors import SessionTerminated
from pokebattle.core.models import Outcome, Phase, Side, Status

PLAYER = [
    ("venusaur", 60, ["razor_leaf", "sleep_powder"]),
    ("jolteon", 60, ["thunderbolt"]),
]
NPC = [("slowbro", 60, ["surf"]), ("geodude", 60, ["tackle"])]


def test_validator_is_pure_and_idempotent(make_session):
    session = make_session(PLAYER, NPC)
    before = session_to_dict(session)

    first = valid_actions(session, Side.PLAYER)
    second = valid_actions(session, Side.PLAYER)

    assert first == second
    assert session_to_dict(session) == before
    assert first == frozenset({UseMove(0), UseMove(1), Switch(1), Forfeit()})


def test_forfeit_is_offered_to_the_player_only(make_session):
    session = make_session(PLAYER, NPC)

    assert Forfeit() in valid_actions(session, Side.PLAYER)
    assert Forfeit() not in valid_actions(session, Side.NPC)
    assert valid_actions(session, Side.NPC) == frozenset({UseMove(0), Switch(1)})


def test_fainted_bench_members_are_not_switch_targets(make_session):
    session = make_session(PLAYER + [("snorlax", 60, ["body_slam"])], NPC)
    session.player_team.members[2].current_hp = 0

    actions = valid_actions(session, Side.PLAYER)

    assert Switch(1) in actions
    assert Switch(2) not in actions


def test_fainted_active_may_only_be_replaced(make_session):
    session = make_session(PLAYER, NPC)
    session.player_team.members[0].current_hp = 0
    session.player_team.active_index = None

    assert valid_actions(session, Side.PLAYER) == frozenset({Switch(1), Forfeit()})


def test_moves_without_pp_are_dropped_and_struggle_appears_when_all_are_empty(make_session):
    session = make_session(PLAYER, NPC)
    moves = session.player_team.members[0].moves
    moves[0].pp = 0

    actions = valid_actions(session, Side.PLAYER)
    assert UseMove(0) not in actions
    assert UseMove(1) in actions

    moves[1].pp = 0
    actions = valid_actions(session, Side.PLAYER)
    assert Struggle() in actions
    assert not any(isinstance(action, UseMove) for action in actions)
    assert Switch(1) in actions


def test_recharging_pokemon_is_committed_to_continue(make_session):
    session = make_session(PLAYER, NPC)
    session.player_team.members[0].volatile.recharging = True

    assert valid_actions(session, Side.PLAYER) == frozenset({Continue(), Forfeit()})


def test_locked_move_is_the_only_option(make_session):
    session = make_session(PLAYER, NPC)
    session.npc_team.members[0].volatile.locked_move = 0
    session.npc_team.members[0].volatile.locked_kind = "charge"

    assert valid_actions(session, Side.NPC) == frozenset({UseMove(0)})


def test_sleep_keeps_moves_unless_prefiltered(make_session):
    session = make_session(PLAYER, NPC)
    session.player_team.members[0].status = Status.SLEEP
    session.player_team.members[0].sleep_turns = 2

    assert UseMove(0) in valid_actions(session, Side.PLAYER)
    assert valid_actions(session, Side.PLAYER, prefilter_incapacitated=True) == frozenset({Continue(), Forfeit()})


def test_ended_session_has_no_actions(make_session):
    session = make_session(PLAYER, NPC)
    session.phase = Phase.ENDED
    session.outcome = Outcome.NPC_WINS

    assert valid_actions(session, Side.PLAYER) == frozenset()
    with pytest.raises(SessionTerminated):
        require_actions(session, Side.PLAYER)
