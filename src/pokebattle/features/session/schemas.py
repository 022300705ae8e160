from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

__all__ = [
    "ActionPayload",
    "ActionRequest",
    "ActionResultPayload",
    "BattleStatePayload",
    "CreateBattleRequest",
    "CreateBattleResponse",
    "EventPayload",
    "EventsPayload",
    "MovePayload",
    "OpponentPayload",
    "PokemonPayload",
    "RosterMemberPayload",
    "TeamInfoPayload",
    "TeamSummaryPayload",
    "ValidActionsPayload",
]


class _APIModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class ActionPayload(_APIModel):
    kind: str
    index: int | None = None
    label: str | None = None


class MovePayload(_APIModel):
    index: int
    move_id: str
    name: str | None = None
    type: str | None = None
    power: int | None = None
    accuracy: int | None = None
    pp: int | None = None
    max_pp: int | None = None


class PokemonPayload(_APIModel):
    slot: int
    species: str
    name: str
    level: int
    types: list[str]
    hp: int
    max_hp: int
    status: str | None = None
    active: bool
    fainted: bool
    stages: dict[str, int] | None = None
    stats: dict[str, int] | None = None
    moves: list[MovePayload] = Field(default_factory=list)


class BattleStatePayload(_APIModel):
    session_id: str
    side: str
    turn: int
    phase: str
    outcome: str | None = None
    version: int
    own_team: list[PokemonPayload]
    own_active_index: int | None = None
    opponent_active: PokemonPayload | None = None
    opponent_bench: list[PokemonPayload]
    opponent_unrevealed: int
    opponent_team_size: int
    can_act: bool
    valid_actions: list[ActionPayload]


class EventPayload(_APIModel):
    turn: int
    kind: str
    message: str
    side: str | None = None
    slot: int | None = None
    data: dict[str, Any] = Field(default_factory=dict)


class ActionResultPayload(_APIModel):
    events: list[EventPayload]
    state: BattleStatePayload


class CreateBattleResponse(_APIModel):
    session_id: str
    state: BattleStatePayload


class ValidActionsPayload(_APIModel):
    session_id: str
    actions: list[ActionPayload]
    forced: bool


class EventsPayload(_APIModel):
    session_id: str
    turn: int
    last_turns: int | None = None
    events: list[EventPayload]


class TeamInfoPayload(_APIModel):
    session_id: str
    active_index: int | None = None
    members: list[PokemonPayload]


class RosterMemberPayload(_APIModel):
    species: str
    level: int
    moves: list[str]


class TeamSummaryPayload(_APIModel):
    team_id: str
    name: str
    description: str
    members: list[RosterMemberPayload]


class OpponentPayload(_APIModel):
    opponent_id: str
    name: str
    difficulty: str
    description: str
    team_size: int


class CreateBattleRequest(BaseModel):
    team_id: str
    opponent_id: str
    player_id: str = "player"
    seed: int | None = None

    @model_validator(mode="before")
    @classmethod
    def _coerce(cls, data: dict[str, object]) -> dict[str, object]:
        if not isinstance(data, dict):
            return data
        cleaned: dict[str, object] = dict(data)
        for field in ("team_id", "opponent_id"):
            value = cleaned.get(field)
            if isinstance(value, str):
                cleaned[field] = value.strip().lower()
        seed = cleaned.get("seed")
        if seed in (None, ""):
            cleaned["seed"] = None
        elif isinstance(seed, str):
            try:
                cleaned["seed"] = int(seed)
            except ValueError:
                cleaned["seed"] = None
        player = cleaned.get("player_id")
        if player in (None, "") or (isinstance(player, str) and not player.strip()):
            cleaned.pop("player_id", None)
        return cleaned


class ActionRequest(BaseModel):
    kind: str
    index: int | None = None
    expected_version: int | None = Field(default=None, ge=0)

    def as_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {"kind": self.kind}
        if self.index is not None:
            payload["index"] = self.index
        return payload
