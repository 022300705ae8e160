#!/usr/bin/env python3
"""Auto-play prefab matchups and report how often each side wins.

Usage:
    python scripts/simulate_battles.py --verbose
"""

from __future__ import annotations

import argparse
import random
import statistics
from collections import Counter
from dataclasses import dataclass

from pokebattle.battle.policy import PolicySelector
from pokebattle.cli import autopilot_action
from pokebattle.features.session import BattleService


@dataclass(frozen=True)
class MatchSpec:
    name: str
    team_id: str
    opponent_id: str
    max_submissions: int


CANONICAL_MATCHES: tuple[MatchSpec, ...] = (
    MatchSpec(name="venusaur_vs_brock", team_id="venusaur_team", opponent_id="gym_leader_easy", max_submissions=300),
    MatchSpec(name="charizard_vs_misty", team_id="charizard_team", opponent_id="gym_leader_medium", max_submissions=300),
    MatchSpec(name="blastoise_vs_surge", team_id="blastoise_team", opponent_id="gym_leader_hard", max_submissions=300),
)

SEEDS = (101, 202, 303, 404, 505)


def play_match(service: BattleService, spec: MatchSpec, seed: int) -> tuple[str, int]:
    created = service.create_battle(spec.team_id, spec.opponent_id, player_id="simulator", seed=seed)
    selector = PolicySelector(service.catalog)
    rng = random.Random(seed * 17 + 3)
    state = created.state
    for _ in range(spec.max_submissions):
        if state.phase == "ended":
            break
        action = autopilot_action(service, created.session_id, selector, rng)
        state = service.submit_action(created.session_id, action).state
    return state.outcome or "unfinished", state.turn


def evaluate_match(service: BattleService, spec: MatchSpec) -> tuple[Counter[str], list[int]]:
    outcomes: Counter[str] = Counter()
    turns: list[int] = []
    for seed in SEEDS:
        outcome, turn = play_match(service, spec, seed)
        outcomes[outcome] += 1
        turns.append(turn)
    return outcomes, turns


def main() -> None:
    parser = argparse.ArgumentParser(description="Simulate prefab battles with the autopilot on the player side.")
    parser.add_argument("--verbose", action="store_true", help="Print per-seed results")
    args = parser.parse_args()

    service = BattleService()
    for spec in CANONICAL_MATCHES:
        outcomes, turns = evaluate_match(service, spec)
        win_rate = outcomes["player_wins"] / len(SEEDS)
        print(f"{spec.name}: player win rate {win_rate:.0%} (mean turns {statistics.fmean(turns):.1f})")
        if args.verbose:
            for seed, turn in zip(SEEDS, turns, strict=False):
                print(f"  seed {seed}: {turn} turns")
            print(f"  outcomes: {dict(outcomes)}")


if __name__ == "__main__":
    main()
