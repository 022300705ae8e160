from __future__ import annotations

import pytest

from pokebattle.battle.validator import forced_action
from pokebattle.core.actions import Continue, Forfeit, Struggle, Switch, UseMove
from pokebattle.core.codec import pokemon_to_dict
from pokebattle.core.errors import EngineFault
from pokebattle.core.events import (
    DAMAGE,
    FAILED_TO_MOVE,
    MOVE_USED,
    NO_EFFECT,
    STAT_CHANGE,
    STATUS,
    STATUS_CURED,
    SWITCH_IN,
    SWITCH_OUT,
    VOLATILE,
)
from pokebattle.core.models import Side, Status, TeamPair
from pokebattle.mechanics.gen1 import Gen1Engine
from pokebattle.mechanics.stats import base_damage, effective_speed, stage_multiplier


@pytest.fixture
def engine(catalog):
    return Gen1Engine(catalog)


@pytest.fixture
def pair(make_team):
    def _pair(player, npc) -> TeamPair:
        return TeamPair(player=make_team(player), npc=make_team(npc), turn=1)

    return _pair


def _of(events, kind, side=None):
    return [event for event in events if event.kind == kind and (side is None or event.side is side)]


def test_resolve_action_does_not_mutate_input(engine, pair, quiet_rng):
    state = pair([("charizard", 60, ["flamethrower"])], [("venusaur", 60, ["razor_leaf"])])
    before = [pokemon_to_dict(mon) for mon in (*state.player.members, *state.npc.members)]

    updated, events = engine.resolve_action(state, Side.PLAYER, UseMove(0), quiet_rng())

    assert [pokemon_to_dict(mon) for mon in (*state.player.members, *state.npc.members)] == before
    assert updated is not state
    assert updated.npc.members[0].current_hp < state.npc.members[0].current_hp
    assert _of(events, DAMAGE, Side.NPC)


def test_damage_never_drops_below_one(engine, pair, quiet_rng):
    state = pair([("staryu", 1, ["water_gun"])], [("cloyster", 100, ["harden"])])

    updated, events = engine.resolve_action(state, Side.PLAYER, UseMove(0), quiet_rng())

    hit = _of(events, DAMAGE, Side.NPC)[0]
    assert hit.data["damage"] == 1
    assert updated.npc.members[0].current_hp == updated.npc.members[0].max_hp - 1


def test_type_immunity_reports_no_effect_but_spends_pp(engine, pair, quiet_rng):
    state = pair([("rhydon", 60, ["earthquake"])], [("zapdos", 60, ["drill_peck"])])

    updated, events = engine.resolve_action(state, Side.PLAYER, UseMove(0), quiet_rng())

    assert _of(events, NO_EFFECT)
    assert not _of(events, DAMAGE)
    assert updated.npc.members[0].current_hp == updated.npc.members[0].max_hp
    assert updated.player.members[0].moves[0].pp == 9


def test_status_move_respects_type_immunity(engine, pair, quiet_rng):
    state = pair([("jolteon", 60, ["thunder_wave"])], [("rhydon", 60, ["earthquake"])])

    updated, events = engine.resolve_action(state, Side.PLAYER, UseMove(0), quiet_rng())

    assert _of(events, NO_EFFECT)
    assert updated.npc.members[0].status is None


def test_sleep_counts_down_and_waking_spends_the_turn(engine, pair, quiet_rng):
    rng = quiet_rng(high=False)
    state = pair([("venusaur", 60, ["sleep_powder"])], [("snorlax", 60, ["body_slam"])])

    asleep, events = engine.resolve_action(state, Side.PLAYER, UseMove(0), rng)
    status = _of(events, STATUS, Side.NPC)[0]
    assert status.data == {"status": "sleep", "sleep_turns": 1}
    assert asleep.npc.members[0].status is Status.SLEEP

    awake, events = engine.resolve_action(asleep, Side.NPC, UseMove(0), rng)
    assert [event.kind for event in events] == [STATUS_CURED]
    assert events[0].data["reason"] == "woke_up"
    assert awake.npc.members[0].status is None
    assert awake.npc.members[0].moves[0].pp == 15


def test_frozen_pokemon_cannot_move(engine, pair, quiet_rng):
    state = pair([("lapras", 60, ["surf"])], [("snorlax", 60, ["body_slam"])])
    state.player.members[0].status = Status.FREEZE

    updated, events = engine.resolve_action(state, Side.PLAYER, UseMove(0), quiet_rng())

    assert [event.data["reason"] for event in _of(events, FAILED_TO_MOVE)] == ["freeze"]
    assert updated.player.members[0].moves[0].pp == 15


def test_charge_move_locks_then_strikes_without_spending_pp_again(engine, pair, quiet_rng):
    rng = quiet_rng()
    state = pair([("venusaur", 60, ["solar_beam"])], [("snorlax", 60, ["harden"])])

    charged, events = engine.resolve_action(state, Side.PLAYER, UseMove(0), rng)
    assert _of(events, VOLATILE, Side.PLAYER)[0].data["locked_move"] == 0
    assert not _of(events, DAMAGE)
    assert forced_action(charged.player.members[0]) == UseMove(0)
    assert charged.player.members[0].moves[0].pp == 9

    fired, events = engine.resolve_action(charged, Side.PLAYER, UseMove(0), rng)
    assert _of(events, DAMAGE, Side.NPC)
    assert fired.player.members[0].moves[0].pp == 9
    assert fired.player.members[0].volatile.locked_move is None


def test_bind_traps_the_target_until_released(engine, pair, quiet_rng):
    rng = quiet_rng()
    state = pair([("onix", 60, ["wrap"])], [("snorlax", 60, ["body_slam"])])

    bound, events = engine.resolve_action(state, Side.PLAYER, UseMove(0), rng)
    trap = _of(events, VOLATILE, Side.NPC)[0]
    assert trap.data["bound_turns"] == 4
    assert forced_action(bound.npc.members[0]) == Continue()
    assert forced_action(bound.player.members[0]) == UseMove(0)

    stuck, events = engine.resolve_action(bound, Side.NPC, Continue(), rng)
    assert [event.data["reason"] for event in _of(events, FAILED_TO_MOVE)] == ["bound"]

    squeezed, events = engine.resolve_action(stuck, Side.PLAYER, UseMove(0), rng)
    assert squeezed.player.members[0].volatile.locked_turns == 3
    assert squeezed.npc.members[0].volatile.bound_turns == 3
    assert squeezed.player.members[0].moves[0].pp == 19


def test_recoil_hurts_the_attacker(engine, pair, quiet_rng):
    state = pair([("tauros", 60, ["double_edge"])], [("snorlax", 60, ["harden"])])

    updated, events = engine.resolve_action(state, Side.PLAYER, UseMove(0), quiet_rng())

    dealt = _of(events, DAMAGE, Side.NPC)[0].data["damage"]
    recoil = _of(events, DAMAGE, Side.PLAYER)[0]
    assert recoil.data["reason"] == "recoil"
    assert recoil.data["damage"] == max(1, int(dealt * 0.25))
    assert updated.player.members[0].current_hp == recoil.data["hp"]


def test_hyper_beam_requires_a_recharge_turn(engine, pair, quiet_rng):
    rng = quiet_rng()
    state = pair([("snorlax", 60, ["hyper_beam"])], [("cloyster", 60, ["harden"])])

    fired, events = engine.resolve_action(state, Side.PLAYER, UseMove(0), rng)
    assert fired.player.members[0].volatile.recharging is True
    assert forced_action(fired.player.members[0]) == Continue()
    with pytest.raises(EngineFault):
        engine.resolve_action(fired, Side.PLAYER, UseMove(0), rng)

    rested, events = engine.resolve_action(fired, Side.PLAYER, Continue(), rng)
    assert events[0].data["reason"] == "recharge"
    assert rested.player.members[0].volatile.recharging is False


def test_stat_stages_are_clamped(engine, pair, quiet_rng):
    state = pair([("venusaur", 60, ["swords_dance"])], [("snorlax", 60, ["harden"])])
    state.player.members[0].stages.attack = 5

    updated, events = engine.resolve_action(state, Side.PLAYER, UseMove(0), quiet_rng())
    change = _of(events, STAT_CHANGE)[0]
    assert change.data == {"stat": "attack", "stage": 6, "delta": 1}

    _, events = engine.resolve_action(updated, Side.PLAYER, UseMove(0), quiet_rng())
    assert _of(events, NO_EFFECT)
    assert not _of(events, STAT_CHANGE)


def test_switch_resets_stages_and_reveals_incoming(engine, pair, quiet_rng):
    state = pair(
        [("venusaur", 60, ["swords_dance"]), ("jolteon", 60, ["thunderbolt"])],
        [("snorlax", 60, ["harden"])],
    )
    state.player.members[0].stages.attack = 2

    updated, events = engine.resolve_action(state, Side.PLAYER, Switch(1), quiet_rng())

    assert [event.kind for event in events] == [SWITCH_OUT, SWITCH_IN]
    assert events[1].data["reason"] == "switch"
    assert updated.player.active_index == 1
    assert updated.player.members[0].stages.attack == 0
    assert updated.player.members[1].revealed is True


def test_struggle_only_without_pp(engine, pair, quiet_rng):
    state = pair([("snorlax", 60, ["body_slam"])], [("cloyster", 60, ["harden"])])
    with pytest.raises(EngineFault):
        engine.resolve_action(state, Side.PLAYER, Struggle(), quiet_rng())

    state.player.members[0].moves[0].pp = 0
    updated, events = engine.resolve_action(state, Side.PLAYER, Struggle(), quiet_rng())
    assert _of(events, MOVE_USED)[0].data["move"] == "struggle"
    recoil = _of(events, DAMAGE, Side.PLAYER)[0]
    assert recoil.data["reason"] == "recoil"


def test_using_a_move_without_pp_is_an_engine_fault(engine, pair, quiet_rng):
    state = pair([("snorlax", 60, ["body_slam"])], [("cloyster", 60, ["harden"])])
    state.player.members[0].moves[0].pp = 0

    with pytest.raises(EngineFault):
        engine.resolve_action(state, Side.PLAYER, UseMove(0), quiet_rng())


def test_forfeit_is_not_an_engine_action(engine, pair, quiet_rng):
    state = pair([("snorlax", 60, ["body_slam"])], [("cloyster", 60, ["harden"])])

    with pytest.raises(EngineFault):
        engine.resolve_action(state, Side.PLAYER, Forfeit(), quiet_rng())


def test_poison_deals_a_sixteenth_at_end_of_turn(engine, pair, quiet_rng):
    state = pair([("snorlax", 60, ["body_slam"])], [("cloyster", 60, ["harden"])])
    state.player.members[0].status = Status.POISON
    max_hp = state.player.members[0].max_hp

    updated, events = engine.apply_end_of_turn(state, quiet_rng())

    assert len(events) == 1
    assert events[0].data["damage"] == max_hp // 16
    assert events[0].data["reason"] == "poison"
    assert updated.player.members[0].current_hp == max_hp - max_hp // 16


def test_secondary_status_is_blocked_by_matching_type(engine, pair, quiet_rng):
    state = pair([("charizard", 60, ["ember"])], [("arcanine", 60, ["body_slam"])])

    updated, events = engine.resolve_action(state, Side.PLAYER, UseMove(0), quiet_rng(high=False))

    assert _of(events, DAMAGE, Side.NPC)
    assert not _of(events, STATUS)
    assert updated.npc.members[0].status is None


def test_stat_helpers():
    assert stage_multiplier(0) == 1.0
    assert stage_multiplier(2) == 2.0
    assert stage_multiplier(-2) == 0.5
    assert base_damage(50, 300, 300, 100) == base_damage(50, 75, 75, 100)


def test_paralysis_quarters_speed(make_team):
    mon = make_team([("jolteon", 60, ["thunderbolt"])]).members[0]
    healthy = effective_speed(mon)
    mon.status = Status.PARALYSIS
    assert effective_speed(mon) == healthy // 4
