from __future__ import annotations

import argparse
import logging
import random
import sys

from rich.logging import RichHandler

from .battle.policy import PolicySelector
from .battle.visibility import view_for
from .core import feature_flags
from .core.actions import Action, Forfeit, action_from_dict
from .core.errors import BattleError
from .core.models import Difficulty, NPCProfile, Side
from .features.session import BattleService
from .ui.presenters import RichPresenter

logger = logging.getLogger(__name__)

_AUTOPILOT = NPCProfile(profile_id="autopilot", name="Autopilot", difficulty=Difficulty.HARD)


def _add_play_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--team", default="venusaur_team", help="Prefab team id (see --list)")
    p.add_argument("--opponent", default="gym_leader_easy", help="NPC opponent id (see --list)")
    # If omitted, runs with a random seed for variety. Pass an int to reproduce.
    p.add_argument("--seed", type=int, default=None, help="RNG seed (random if omitted)")
    p.add_argument("--auto", action="store_true", help="Let a hard-tier policy play the player side")
    p.add_argument("--max-turns", type=int, default=500, help="Stop auto-play after this many submissions")
    p.add_argument("--list", action="store_true", help="List prefab teams and opponents, then exit")
    p.add_argument(
        "--feature",
        action="append",
        default=[],
        metavar="FLAG",
        help=f"Enable a rules flag ({', '.join(sorted(feature_flags.KNOWN_FLAGS))})",
    )
    p.add_argument("--no-color", action="store_true", help="Disable colored output (default is colored)")
    p.add_argument("-v", "--verbose", action="store_true", help="Show debug logging")


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(show_path=False)],
    )


def _list_catalog(service: BattleService, presenter: RichPresenter) -> None:
    for team in service.list_teams():
        members = ", ".join(member.species for member in team.members)
        presenter.console.print(f"[bold cyan]{team.team_id}[/] {team.name}: {members}")
    for opponent in service.list_opponents():
        presenter.console.print(
            f"[bold magenta]{opponent.opponent_id}[/] {opponent.name} ({opponent.difficulty}): {opponent.description}"
        )


def autopilot_action(
    service: BattleService,
    session_id: str,
    selector: PolicySelector,
    rng: random.Random,
) -> Action:
    """Pick the player's next action with the hard-tier NPC policy."""

    session, _version = service.store.load(session_id)
    legal = service.resolver.legal_actions(session)
    return selector.choose_action(_AUTOPILOT, view_for(session, Side.PLAYER), legal, rng)


def run_battle(
    service: BattleService,
    presenter: RichPresenter,
    *,
    team_id: str,
    opponent_id: str,
    seed: int | None = None,
    auto: bool = False,
    max_turns: int = 500,
) -> str | None:
    """Play one battle to completion and return its outcome value."""

    created = service.create_battle(team_id, opponent_id, player_id="cli", seed=seed)
    session_id = created.session_id
    state = created.state
    opponent = service.catalog.opponent(opponent_id)
    presenter.start_battle(state, opponent.name)
    autopilot = PolicySelector(service.catalog)
    rng = random.Random(seed)

    for _ in range(max_turns):
        if state.phase == "ended":
            break
        presenter.show_state(state)
        if auto:
            action = autopilot_action(service, session_id, autopilot, rng)
        else:
            actions = service.valid_actions(session_id).actions
            presenter.show_actions(state, actions)
            choice = presenter.prompt_choice(len(actions))
            if presenter.quit_requested:
                action = Forfeit()
            else:
                picked = actions[choice]
                action = action_from_dict({"kind": picked.kind, "index": picked.index})
        result = service.submit_action(session_id, action)
        presenter.show_events(result.events)
        state = result.state
    if state.phase != "ended":
        logger.warning("Stopped after the turn limit", extra={"session_id": session_id, "turns": max_turns})
        return None

    presenter.show_team(state.own_team)
    presenter.show_outcome(state)
    return state.outcome


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(prog="pokebattle", description="Battle an NPC trainer in the terminal")
    _add_play_args(parser)
    args = parser.parse_args(sys.argv[1:] if argv is None else argv)

    _configure_logging(args.verbose)
    unknown = [flag for flag in args.feature if flag.strip().lower() not in feature_flags.KNOWN_FLAGS]
    if unknown:
        parser.error(f"unknown feature flag(s): {', '.join(unknown)}")

    presenter = RichPresenter(no_color=args.no_color)
    with feature_flags.override(enable=args.feature):
        service = BattleService()
        if args.list:
            _list_catalog(service, presenter)
            return
        try:
            run_battle(
                service,
                presenter,
                team_id=args.team,
                opponent_id=args.opponent,
                seed=args.seed,
                auto=args.auto,
                max_turns=args.max_turns,
            )
        except BattleError as exc:
            raise SystemExit(f"error: {exc.message}") from exc


if __name__ == "__main__":
    main()
