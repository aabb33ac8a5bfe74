"""Pydantic models for request payloads entering the engine."""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError as PydanticValidationError,
    model_validator,
)
from pydantic.alias_generators import to_camel

from ..errors import ValidationError

CaptainPickCategory = Literal["defence", "influence"]

NonNegativeInt = Annotated[int, Field(ge=0)]

PARTIAL_STAT_FIELDS = frozenset({"yellow_cards", "red_cards", "minutes_played", "rating"})


class RegisteredPlayer(BaseModel):
    kind: Literal["registered"] = "registered"
    player_id: int


class GuestPlayer(BaseModel):
    kind: Literal["guest"] = "guest"
    guest_id: int


PlayerRef = Annotated[Union[RegisteredPlayer, GuestPlayer], Field(discriminator="kind")]


class StatSubmission(BaseModel):
    """One player's stats for a match.

    ``playerId`` targets a registered player, ``guestId`` a match guest;
    neither means the caller is submitting their own stats.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    player_id: int | None = None
    guest_id: int | None = None
    goals: NonNegativeInt = 0
    assists: NonNegativeInt = 0
    clean_sheets: NonNegativeInt = Field(
        default=0, validation_alias=AliasChoices("cleanSheets", "cleanSheet", "clean_sheets")
    )
    penalties: NonNegativeInt = 0
    free_kicks: NonNegativeInt = 0
    yellow_cards: NonNegativeInt = 0
    red_cards: NonNegativeInt = 0
    defence: NonNegativeInt = 0
    impact: NonNegativeInt = 0
    minutes_played: NonNegativeInt = 0
    rating: float = Field(default=0.0, ge=0)

    @model_validator(mode="after")
    def _single_target(self) -> StatSubmission:
        if self.player_id is not None and self.guest_id is not None:
            raise ValueError("playerId and guestId are mutually exclusive")
        return self

    def player_ref(self) -> RegisteredPlayer | GuestPlayer | None:
        if self.guest_id is not None:
            return GuestPlayer(guest_id=self.guest_id)
        if self.player_id is not None:
            return RegisteredPlayer(player_id=self.player_id)
        return None

    def stat_values(self) -> dict[str, Any]:
        """Columns to write on the stat row.

        Scoring columns are always rewritten; discipline and playing-time
        columns only when the payload carries them.
        """
        values = self.model_dump(exclude={"player_id", "guest_id"})
        for name in PARTIAL_STAT_FIELDS - self.model_fields_set:
            values.pop(name)
        return values


class GuestEntry(BaseModel):
    """Guest listed on a match roster at scheduling time."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    team: Literal["home", "away"]
    first_name: str = "Guest"
    last_name: str = "Player"
    shirt_number: str | None = None


class CaptainPickRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    category: CaptainPickCategory
    player_id: int


def _looks_like_single_stat(body: dict[str, Any]) -> bool:
    keys = {"playerId", "player_id", "guestId", "guest_id", "goals"}
    return any(key in body for key in keys)


def normalize_stat_payload(body: Any) -> list[StatSubmission]:
    """Normalize a stats request body into a typed list.

    Accepts a single stats object, a list of them, or the legacy
    ``{"stats": [...]}`` wrapper.
    """
    if isinstance(body, dict) and isinstance(body.get("stats"), list):
        items = body["stats"]
    elif isinstance(body, list):
        items = body
    elif isinstance(body, dict) and _looks_like_single_stat(body):
        items = [body]
    else:
        raise ValidationError("Invalid stats format")

    submissions: list[StatSubmission] = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError(f"Stats entry {index} must be an object")
        try:
            submissions.append(StatSubmission.model_validate(item))
        except PydanticValidationError as exc:
            raise ValidationError(f"Stats entry {index} is invalid: {exc.errors()[0]['msg']}") from exc
    return submissions


def parse_captain_pick(body: Any) -> CaptainPickRequest:
    try:
        return CaptainPickRequest.model_validate(body)
    except PydanticValidationError as exc:
        raise ValidationError(f"Invalid captain pick: {exc.errors()[0]['msg']}") from exc
