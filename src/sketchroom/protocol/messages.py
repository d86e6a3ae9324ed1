from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# Entities are frozen values: updates go through `model_copy(update=...)`,
# never by assigning fields on a shared instance.


class Identity(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    display_name: str
    anonymous: bool = False
    email: Optional[str] = None


class Credential(BaseModel):
    """
    Decoded session credential.

    Field aliases are the claim names carried inside the token
    (`sub`, `name`, `isAnonymous`, `iat`, `exp`); times are epoch seconds.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    subject_id: str = Field(alias="sub", min_length=1)
    display_name: str = Field(alias="name")
    anonymous: bool = Field(False, alias="isAnonymous")
    issued_at: int = Field(alias="iat")
    expires_at: int = Field(alias="exp")
    email: Optional[str] = None

    @field_validator("issued_at", "expires_at", mode="before")
    @classmethod
    def _whole_seconds(cls, v):
        # foreign issuers may send fractional epoch seconds
        if isinstance(v, float):
            return int(v)
        return v

    @model_validator(mode="after")
    def _window_is_positive(self) -> "Credential":
        if self.expires_at <= self.issued_at:
            raise ValueError("credential expires before it is issued")
        return self

    def is_valid_at(self, now: float) -> bool:
        return now < self.expires_at

    def to_identity(self) -> Identity:
        return Identity(
            id=self.subject_id,
            display_name=self.display_name,
            anonymous=self.anonymous,
            email=self.email,
        )


class Participant(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: str
    username: str
    anonymous: bool = False
    joined_at: datetime
    # False = temporarily disconnected; a departed user is removed instead.
    is_active: bool = True


class Room(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    code: str = Field(pattern=r"^[A-Z0-9]{6}$")
    name: str
    description: Optional[str] = None
    created_by: str
    created_at: datetime
    participants: tuple[Participant, ...] = ()
    max_participants: int = Field(10, ge=2, le=50)
    is_active: bool = True
    is_public: bool = True


class CreateRoomRequest(BaseModel):
    # Deliberately loose: the directory reports every violation at once.
    name: Optional[str] = None
    description: Optional[str] = None
    max_participants: Optional[int] = None
    is_public: Optional[bool] = None


class JoinRoomRequest(BaseModel):
    code: str = ""
    user_id: str
    username: str
    anonymous: bool = False


class Violation(BaseModel):
    model_config = ConfigDict(frozen=True)

    field: str
    message: str


class Point(BaseModel):
    model_config = ConfigDict(frozen=True)

    x: float
    y: float
    pressure: Optional[float] = Field(None, ge=0.0, le=1.0)


class DrawingOperation(BaseModel):
    """One stroke or erase pass. `timestamp` (ms) is advisory; the log order is authoritative."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    kind: Literal["draw", "erase"] = Field(alias="type")
    points: tuple[Point, ...] = ()
    color: str = "#000000"
    brush_size: float = Field(3.0, alias="brushSize", gt=0)
    user_id: str = Field(alias="userId")
    timestamp: int
