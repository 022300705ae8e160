from __future__ import annotations

import logging
import secrets
import string
from copy import deepcopy

from ..core.errors import ValidationError
from ..core.events import BATTLE_STARTED, SWITCH_IN, EventLog
from ..core.models import (
    MAX_MOVES,
    MAX_TEAM_SIZE,
    BattleSession,
    NPCProfile,
    Phase,
    Side,
    Team,
    utcnow,
)
from ..data.catalog import Catalog, build_team, load_catalog

__all__ = ["SessionLifecycleManager", "new_session_id"]

logger = logging.getLogger(__name__)


def new_session_id(length: int = 12) -> str:
    alphabet = string.ascii_lowercase + string.digits
    return "".join(secrets.choice(alphabet) for _ in range(length))


def _validate_team(team: Team, label: str) -> None:
    if not 1 <= len(team.members) <= MAX_TEAM_SIZE:
        raise ValidationError(f"{label} team must have between 1 and {MAX_TEAM_SIZE} pokemon")
    for slot, mon in enumerate(team.members):
        where = f"{label} slot {slot} ({mon.species})"
        if not 1 <= mon.level <= 100:
            raise ValidationError(f"{where}: level {mon.level} outside 1..100")
        if not 1 <= len(mon.moves) <= MAX_MOVES:
            raise ValidationError(f"{where}: needs between 1 and {MAX_MOVES} moves")
        if mon.max_hp <= 0 or not 0 < mon.current_hp <= mon.max_hp:
            raise ValidationError(f"{where}: HP {mon.current_hp}/{mon.max_hp} out of range")
        for move in mon.moves:
            if not 0 <= move.pp <= move.max_pp:
                raise ValidationError(f"{where}: {move.move_id} PP {move.pp}/{move.max_pp} out of range")


class SessionLifecycleManager:
    """Builds fresh battle sessions; ending one is the resolver's job."""

    def __init__(self, catalog: Catalog | None = None) -> None:
        self._catalog = catalog or load_catalog()

    def create(
        self,
        player_team: Team,
        npc_profile: NPCProfile,
        *,
        player_id: str,
        npc_team: Team | None = None,
        seed: int | None = None,
        session_id: str | None = None,
    ) -> BattleSession:
        if not player_id:
            raise ValidationError("player_id is required")
        player = deepcopy(player_team)
        npc = deepcopy(npc_team) if npc_team is not None else build_team(self._catalog, npc_profile.roster)
        _validate_team(player, "player")
        _validate_team(npc, "npc")

        for team in (player, npc):
            team.active_index = 0
            team.members[0].revealed = True

        resolved_seed = seed if seed is not None else secrets.SystemRandom().getrandbits(32)
        now = utcnow()
        session = BattleSession(
            session_id=session_id or new_session_id(),
            player_id=player_id,
            npc_profile_id=npc_profile.profile_id,
            player_team=player,
            npc_team=npc,
            seed=resolved_seed,
            turn=1,
            phase=Phase.WAITING_FOR_PLAYER_ACTION,
            version=0,
            created_at=now,
            updated_at=now,
        )
        log = EventLog(turn=1)
        log.emit(
            BATTLE_STARTED,
            f"{npc_profile.name} wants to battle!",
            opponent=npc_profile.profile_id,
            difficulty=npc_profile.difficulty.value,
        )
        for side in (Side.PLAYER, Side.NPC):
            lead = session.team(side).members[0]
            species = self._catalog.species.get(lead.species)
            log.emit(
                SWITCH_IN,
                f"{species.name if species else lead.species} was sent out.",
                side=side,
                slot=0,
                species=lead.species,
                hp=lead.current_hp,
                reason="lead",
            )
        session.events.extend(log.events)
        logger.info(
            "Battle session created",
            extra={
                "session_id": session.session_id,
                "player_id": player_id,
                "opponent": npc_profile.profile_id,
                "seed": resolved_seed,
            },
        )
        return session

    def create_from_prefab(
        self,
        team_id: str,
        opponent_id: str,
        *,
        player_id: str,
        seed: int | None = None,
        session_id: str | None = None,
    ) -> BattleSession:
        prefab = self._catalog.team(team_id)
        profile = self._catalog.opponent(opponent_id)
        player_team = build_team(self._catalog, prefab.members)
        return self.create(player_team, profile, player_id=player_id, seed=seed, session_id=session_id)
