from __future__ import annotations

import random
from dataclasses import replace

import pytest

from pokebattle.battle.policy import TIER_LIBRARY, PolicySelector
from pokebattle.battle.validator import valid_actions
from pokebattle.battle.visibility import view_for
from pokebattle.core.actions import Forfeit, Switch, UseMove
from pokebattle.core.errors import EngineFault, InvalidAction
from pokebattle.core.models import Difficulty, NPCProfile, Side, Status


@pytest.fixture
def selector(catalog):
    return PolicySelector(catalog)


def _choose(selector, catalog, session, opponent_id, seed=0):
    profile = catalog.opponent(opponent_id)
    legal = valid_actions(session, Side.NPC)
    return selector.choose_action(profile, view_for(session, Side.NPC), legal, random.Random(seed)), legal


def test_every_difficulty_has_a_tier():
    assert set(TIER_LIBRARY) == set(Difficulty)


def test_easy_swings_with_the_strongest_move(selector, catalog, make_session):
    session = make_session(
        [("snorlax", 60, ["body_slam"])],
        [("rhydon", 60, ["tackle", "body_slam", "earthquake", "tail_whip"]), ("onix", 60, ["harden"])],
    )

    choice, legal = _choose(selector, catalog, session, "gym_leader_easy")

    assert choice == UseMove(2)
    assert choice in legal


def test_easy_replacement_takes_the_first_healthy_slot(selector, catalog, make_session):
    session = make_session(
        [("snorlax", 60, ["body_slam"])],
        [("rhydon", 60, ["earthquake"]), ("onix", 60, ["harden"]), ("golem", 60, ["earthquake"])],
    )
    session.npc_team.members[0].current_hp = 0
    session.npc_team.active_index = None

    choice, _ = _choose(selector, catalog, session, "gym_leader_easy")

    assert choice == Switch(1)


def test_single_option_is_returned_directly(selector, catalog, make_session):
    session = make_session([("snorlax", 60, ["body_slam"])], [("rhydon", 60, ["earthquake"])])

    choice, legal = _choose(selector, catalog, session, "gym_leader_hard")

    assert legal == frozenset({UseMove(0)})
    assert choice == UseMove(0)


def test_empty_legal_set_is_rejected(selector, catalog, make_session):
    session = make_session([("snorlax", 60, ["body_slam"])], [("rhydon", 60, ["earthquake"])])
    profile = catalog.opponent("gym_leader_easy")

    with pytest.raises(InvalidAction):
        selector.choose_action(profile, view_for(session, Side.NPC), frozenset(), random.Random(0))
    with pytest.raises(InvalidAction):
        selector.choose_action(profile, view_for(session, Side.NPC), frozenset({Forfeit()}), random.Random(0))


def test_medium_never_picks_a_move_that_cannot_hit(selector, catalog, make_session):
    session = make_session(
        [("zapdos", 60, ["drill_peck"])],
        [("rhydon", 60, ["earthquake", "rock_slide"])],
    )

    picks = {_choose(selector, catalog, session, "gym_leader_medium", seed=seed)[0] for seed in range(25)}

    assert picks == {UseMove(1)}


def test_medium_pulls_a_hurt_pokemon_out_of_a_bad_matchup(selector, catalog, make_session):
    session = make_session(
        [("blastoise", 60, ["surf"])],
        [("charizard", 60, ["flamethrower"], 10), ("jolteon", 60, ["thunderbolt"])],
    )
    session.player_team.members[0].revealed_moves.append(0)

    choice, _ = _choose(selector, catalog, session, "gym_leader_medium")

    assert choice == Switch(1)


def test_hard_takes_a_knockout_when_it_outspeeds(selector, catalog, make_session):
    session = make_session(
        [("blastoise", 60, ["surf"], 10)],
        [("jolteon", 60, ["thunder_wave", "thunderbolt"])],
    )

    choice, _ = _choose(selector, catalog, session, "gym_leader_hard")

    assert choice == UseMove(1)


def test_hard_sets_up_status_on_a_healthy_target(selector, catalog, make_session):
    session = make_session(
        [("snorlax", 60, ["body_slam"])],
        [("jolteon", 60, ["thunder_wave", "thunderbolt"])],
    )

    choice, _ = _choose(selector, catalog, session, "gym_leader_hard")

    assert choice == UseMove(0)


def test_hard_attacks_once_the_target_already_has_a_status(selector, catalog, make_session):
    session = make_session(
        [("snorlax", 60, ["body_slam"])],
        [("jolteon", 60, ["thunder_wave", "thunderbolt"])],
    )
    session.player_team.members[0].status = Status.PARALYSIS

    choice, _ = _choose(selector, catalog, session, "gym_leader_hard")

    assert choice == UseMove(1)


def test_policy_only_sees_revealed_player_moves(catalog, make_session):
    session = make_session(
        [("blastoise", 60, ["surf", "blizzard"])],
        [("jolteon", 60, ["thunderbolt"])],
    )

    view = view_for(session, Side.NPC)

    assert view.opponent_active is not None
    assert view.opponent_active.moves == ()
    assert view.opponent_active.stats is None


def test_lookahead_follows_the_profile_depth(selector, catalog, make_session):
    session = make_session(
        [("snorlax", 60, ["body_slam"])],
        [("jolteon", 60, ["thunder_wave", "thunderbolt"])],
    )
    hard = catalog.opponent("gym_leader_hard")
    view = view_for(session, Side.NPC)
    legal = valid_actions(session, Side.NPC)

    planned = selector.choose_action(hard, view, legal, random.Random(0))
    shallow = selector.choose_action(replace(hard, lookahead_depth=0), view, legal, random.Random(0))

    assert hard.lookahead_depth == 1
    assert planned == UseMove(0)
    assert shallow == UseMove(1)


def test_unset_depth_takes_the_tier_default(selector, catalog, make_session):
    session = make_session(
        [("snorlax", 60, ["body_slam"])],
        [("jolteon", 60, ["thunder_wave", "thunderbolt"])],
    )
    view = view_for(session, Side.NPC)
    legal = valid_actions(session, Side.NPC)
    hard = NPCProfile(profile_id="rival", name="Rival", difficulty=Difficulty.HARD)
    easy = NPCProfile(profile_id="youngster", name="Youngster", difficulty=Difficulty.EASY)

    assert hard.lookahead_depth is None
    assert selector.choose_action(hard, view, legal, random.Random(0)) == UseMove(0)
    assert selector.choose_action(easy, view, legal, random.Random(0)) == UseMove(1)
    assert selector.choose_action(replace(easy, lookahead_depth=1), view, legal, random.Random(0)) == UseMove(0)


def test_unknown_move_in_npc_moveset_is_an_engine_fault(selector, catalog, make_session):
    session = make_session(
        [("snorlax", 60, ["body_slam"])],
        [("rhydon", 60, ["earthquake", "rock_slide"])],
    )
    session.npc_team.members[0].moves[1].move_id = "splash"

    with pytest.raises(EngineFault):
        _choose(selector, catalog, session, "gym_leader_easy")
