"""
Pydantic schemas for the registration API.

Field names follow the camelCase keys the registration form and the admin
portal exchange on the wire.
"""

from __future__ import annotations

import json
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

LPU_TRUE_VALUES = ("true", "yes")


def _bool_to_text(value):
    # Booleans posted for text fields are stored as "true"/"false".
    if isinstance(value, bool):
        return "true" if value else "false"
    return value


class TeamMember(BaseModel):
    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    name: Optional[str] = None
    mobile: Optional[str] = None
    regNo: Optional[str] = None
    gender: Optional[str] = None

    @field_validator("name", "mobile", "regNo", "gender", mode="before")
    @classmethod
    def booleans_as_text(cls, value):
        return _bool_to_text(value)


class TeamDetails(BaseModel):
    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    teamName: Optional[str] = None
    members: list[TeamMember] = Field(default_factory=list)

    @field_validator("teamName", mode="before")
    @classmethod
    def team_name_as_text(cls, value):
        return _bool_to_text(value)

    @field_validator("members", mode="before")
    @classmethod
    def members_default(cls, value):
        return [] if value is None else value


class RegistrationPayload(BaseModel):
    """
    Wire shape of a registration submission.

    Every field is optional. ``teamDetails`` may arrive as a JSON string (the
    form posts it that way) and is parsed into its structured form here, so
    nothing downstream ever sees the raw text. Unknown keys are dropped, and
    server-owned fields such as ``paymentStatus`` are not accepted from clients.
    """

    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    name: Optional[str] = None
    email: Optional[str] = None
    mobile: Optional[str] = None
    gender: Optional[str] = None
    isLpu: bool = False
    regNo: Optional[str] = None
    participationType: Optional[str] = None
    teamDetails: Optional[TeamDetails] = None
    needAccommodation: Optional[str] = None

    @field_validator(
        "name",
        "email",
        "mobile",
        "gender",
        "regNo",
        "participationType",
        "needAccommodation",
        mode="before",
    )
    @classmethod
    def booleans_as_text(cls, value):
        return _bool_to_text(value)

    @field_validator("teamDetails", mode="before")
    @classmethod
    def parse_team_details(cls, value):
        if isinstance(value, str):
            try:
                return json.loads(value)
            except json.JSONDecodeError as exc:
                raise ValueError(f"not valid JSON ({exc.msg})") from exc
        return value

    @field_validator("isLpu", mode="before")
    @classmethod
    def normalize_is_lpu(cls, value) -> bool:
        return value is True or value in LPU_TRUE_VALUES


class RegisterResponse(BaseModel):
    success: Literal[True] = True
    registrationId: str


class UploadPhotoResponse(BaseModel):
    success: Literal[True] = True
    photoUrl: str


class ErrorResponse(BaseModel):
    success: Literal[False] = False
    error: str


class HealthResponse(BaseModel):
    status: Literal["ok"]
    timestamp: str
