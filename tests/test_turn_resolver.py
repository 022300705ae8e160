from __future__ import annotations

import pytest

from pokebattle.battle.policy import PolicySelector
from pokebattle.battle.resolver import TurnResolver
from pokebattle.core.actions import Continue, Forfeit, Switch, UseMove
from pokebattle.core.codec import event_to_dict, session_to_dict
from pokebattle.core.errors import EngineFault, InvalidAction, SessionTerminated
from pokebattle.core.events import (
    BATTLE_ENDED,
    DAMAGE,
    FAILED_TO_MOVE,
    FAINT,
    FORFEIT,
    MOVE_USED,
    SWITCH_IN,
    TURN_STARTED,
)
from pokebattle.core.models import Outcome, Phase, Side, Status
from pokebattle.core.settings import BattleSettings
from pokebattle.mechanics.gen1 import Gen1Engine

PLAYER_SIX = [
    ("jolteon", 60, ["thunderbolt", "body_slam"]),
    ("venusaur", 60, ["razor_leaf"]),
    ("snorlax", 60, ["body_slam"]),
    ("alakazam", 60, ["psychic"]),
    ("lapras", 60, ["surf"]),
    ("rhydon", 60, ["earthquake"]),
]

NPC_RESERVES = [
    ("geodude", 60, ["tackle"]),
    ("onix", 60, ["harden"]),
    ("golem", 60, ["harden"]),
    ("kabutops", 60, ["harden"]),
    ("omastar", 60, ["harden"]),
]


@pytest.fixture
def resolver(catalog):
    return TurnResolver(Gen1Engine(catalog), PolicySelector(catalog), settings=BattleSettings())


def _kinds(events):
    return [event.kind for event in events]


def test_knockout_with_npc_reserves_keeps_battle_running(resolver, make_session):
    session = make_session(PLAYER_SIX, [("slowbro", 60, ["surf", "tail_whip"], 1), *NPC_RESERVES])

    result = resolver.apply(session, UseMove(0))

    after = result.session
    assert after.phase is Phase.WAITING_FOR_PLAYER_ACTION
    assert after.outcome is None
    assert _kinds(result.events).count(FAINT) == 1
    assert after.npc_team.active_index == 1
    assert after.turn == 2
    assert after.version == session.version + 1


def test_knockout_of_last_npc_pokemon_ends_battle(resolver, make_session):
    session = make_session(PLAYER_SIX, [("slowbro", 60, ["surf", "tail_whip"], 1)])

    result = resolver.apply(session, UseMove(0))

    assert result.session.phase is Phase.ENDED
    assert result.session.outcome is Outcome.PLAYER_WINS
    assert result.events[-1].kind == BATTLE_ENDED
    assert result.events[-1].data["outcome"] == "player_wins"


@pytest.mark.parametrize("action", [Switch(0), UseMove(7), Continue()])
def test_illegal_action_is_rejected_without_mutation(resolver, make_session, action):
    session = make_session(PLAYER_SIX, [("slowbro", 60, ["surf"]), *NPC_RESERVES])
    before = session_to_dict(session)

    with pytest.raises(InvalidAction):
        resolver.apply(session, action)

    assert session_to_dict(session) == before
    assert session.version == 0


def test_sleeping_pokemon_keeps_its_moves_and_spends_no_pp(resolver, make_session):
    session = make_session([("slowbro", 60, ["surf", "tail_whip"])], [("snorlax", 60, ["harden"])])
    sleeper = session.player_team.members[0]
    sleeper.status = Status.SLEEP
    sleeper.sleep_turns = 3

    assert UseMove(0) in resolver.legal_actions(session)

    result = resolver.apply(session, UseMove(0))

    player_events = [event for event in result.events if event.side is Side.PLAYER]
    failed = [event for event in player_events if event.kind == FAILED_TO_MOVE]
    assert len(failed) == 1
    assert failed[0].data["reason"] == "sleep"
    assert failed[0].data["sleep_turns"] == 2
    assert MOVE_USED not in _kinds(player_events)
    mon = result.session.player_team.members[0]
    assert mon.moves[0].pp == mon.moves[0].max_pp
    assert mon.status is Status.SLEEP


def test_npc_replacement_lands_in_the_same_delta_as_the_turn(resolver, make_session):
    session = make_session(
        [("slowbro", 60, ["surf"])],
        [("jolteon", 60, ["harden"], 1), *NPC_RESERVES],
    )

    result = resolver.apply(session, UseMove(0))

    kinds = _kinds(result.events)
    assert kinds.index(MOVE_USED) < kinds.index(FAINT) < kinds.index(SWITCH_IN) < kinds.index(TURN_STARTED)
    # the faster NPC acted before fainting
    first_move = next(event for event in result.events if event.kind == MOVE_USED)
    assert first_move.side is Side.NPC
    replacement = next(event for event in result.events if event.kind == SWITCH_IN)
    assert replacement.side is Side.NPC
    assert replacement.data["reason"] == "replacement"
    assert kinds.count(TURN_STARTED) == 1
    assert result.session.turn == session.turn + 1


def test_player_forced_switch_pauses_the_turn(resolver, make_session):
    session = make_session(
        [("slowbro", 60, ["surf"], 1), ("snorlax", 60, ["body_slam"])],
        [("jolteon", 60, ["thunderbolt"])],
    )

    result = resolver.apply(session, UseMove(0))
    paused = result.session

    assert paused.phase is Phase.WAITING_FOR_PLAYER_ACTION
    assert paused.turn == 1
    assert paused.player_team.active_index is None
    assert resolver.legal_actions(paused) == frozenset({Switch(1), Forfeit()})

    resumed = resolver.apply(paused, Switch(1))

    switch_in = next(event for event in resumed.events if event.kind == SWITCH_IN)
    assert switch_in.data["reason"] == "replacement"
    assert resumed.session.player_team.active_index == 1
    assert resumed.session.turn == 2
    assert resumed.session.version == 2


def test_forfeit_ends_the_battle_for_the_npc(resolver, make_session):
    session = make_session(PLAYER_SIX, [("slowbro", 60, ["surf"])])

    result = resolver.apply(session, Forfeit())

    assert _kinds(result.events) == [FORFEIT, BATTLE_ENDED]
    assert result.session.outcome is Outcome.NPC_WINS
    assert resolver.legal_actions(result.session) == frozenset()
    with pytest.raises(SessionTerminated):
        resolver.apply(result.session, UseMove(0))


def test_both_sides_wiped_out_is_a_draw(resolver, make_session):
    session = make_session([("tauros", 60, ["double_edge"], 1)], [("slowbro", 60, ["tail_whip"], 1)])

    result = resolver.apply(session, UseMove(0))

    assert _kinds(result.events).count(FAINT) == 2
    assert result.session.outcome is Outcome.DRAW
    assert result.session.phase is Phase.ENDED


def test_charge_turn_is_auto_advanced(resolver, make_session):
    session = make_session([("venusaur", 60, ["solar_beam"])], [("snorlax", 70, ["harden"]), ("onix", 60, ["harden"])])

    result = resolver.apply(session, UseMove(0))

    turns = [event.data["turn"] for event in result.events if event.kind == TURN_STARTED]
    assert turns == [2, 3]
    player_moves = [event for event in result.events if event.kind == MOVE_USED and event.side is Side.PLAYER]
    assert len(player_moves) == 2
    assert [event.data["pp"] for event in player_moves] == [9, 9]
    assert any(event.kind == DAMAGE and event.side is Side.NPC for event in result.events)
    assert result.session.turn == 3
    assert result.session.version == 1


def test_manual_forced_turns_stop_after_each_turn(catalog, make_session):
    resolver = TurnResolver(
        Gen1Engine(catalog),
        PolicySelector(catalog),
        settings=BattleSettings(auto_advance_forced=False),
    )
    session = make_session([("venusaur", 60, ["solar_beam"])], [("snorlax", 60, ["harden"])])

    result = resolver.apply(session, UseMove(0))

    assert result.session.turn == 2
    assert resolver.legal_actions(result.session) == frozenset({UseMove(0), Forfeit()})


def test_tick_limit_overflow_is_an_engine_fault(catalog, make_session):
    resolver = TurnResolver(Gen1Engine(catalog), PolicySelector(catalog), settings=BattleSettings(max_ticks=1))
    session = make_session([("venusaur", 60, ["solar_beam"])], [("snorlax", 60, ["harden"])])

    with pytest.raises(EngineFault):
        resolver.apply(session, UseMove(0))


class _ExplodingEngine(Gen1Engine):
    def resolve_action(self, state, side, action, rng):
        raise KeyError("missing move table entry")


class _CorruptingEngine(Gen1Engine):
    def resolve_action(self, state, side, action, rng):
        pair, events = super().resolve_action(state, side, action, rng)
        pair.npc.members[0].current_hp = -3
        return pair, events


@pytest.mark.parametrize("engine_cls", [_ExplodingEngine, _CorruptingEngine])
def test_engine_inconsistency_becomes_engine_fault(catalog, make_session, engine_cls):
    resolver = TurnResolver(engine_cls(catalog), PolicySelector(catalog), settings=BattleSettings())
    session = make_session(PLAYER_SIX, [("slowbro", 60, ["surf"])])
    before = session_to_dict(session)

    with pytest.raises(EngineFault):
        resolver.apply(session, UseMove(0))

    assert session_to_dict(session) == before


def test_retrying_the_same_version_replays_identically(resolver, make_session):
    session = make_session(
        [("charizard", 60, ["flamethrower", "slash"]), ("starmie", 60, ["surf"])],
        [("lapras", 60, ["blizzard", "body_slam"]), ("cloyster", 60, ["surf"])],
        seed=1234,
    )

    first = resolver.apply(session, UseMove(1))
    second = resolver.apply(session, UseMove(1))

    assert [event_to_dict(event) for event in first.events] == [event_to_dict(event) for event in second.events]
    assert first.session.player_team == second.session.player_team
    assert first.session.npc_team == second.session.npc_team


def test_corrupt_npc_moveset_is_an_engine_fault_not_a_player_error(resolver, make_session):
    session = make_session(PLAYER_SIX, [("rhydon", 60, ["earthquake", "rock_slide"]), *NPC_RESERVES])
    session.npc_team.members[0].moves[1].move_id = "splash"
    before = session_to_dict(session)

    with pytest.raises(EngineFault):
        resolver.apply(session, UseMove(0))

    assert session_to_dict(session) == before


class _RecordingPolicy(PolicySelector):
    def __init__(self, catalog):
        super().__init__(catalog)
        self.legal_sets = []

    def choose_action(self, profile, view, legal, rng):
        self.legal_sets.append(frozenset(legal))
        return super().choose_action(profile, view, legal, rng)


def test_npc_replacement_under_incapacity_prefilter(catalog, make_session):
    policy = _RecordingPolicy(catalog)
    resolver = TurnResolver(Gen1Engine(catalog), policy, settings=BattleSettings(prefilter_incapacitated=True))
    session = make_session(PLAYER_SIX, [("slowbro", 60, ["surf", "tail_whip"], 1), *NPC_RESERVES])

    result = resolver.apply(session, UseMove(0))

    assert len(policy.legal_sets) == 2
    assert all(isinstance(action, Switch) for action in policy.legal_sets[1])
    assert result.session.npc_team.active_index == 1
    assert result.session.phase is Phase.WAITING_FOR_PLAYER_ACTION
