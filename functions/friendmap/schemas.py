"""
Pydantic schemas for the friend map API.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictInt, confloat, field_validator

# Finite numbers only; bools, numeric strings, NaN and Infinity are rejected.
Coordinate = Union[StrictInt, confloat(strict=True, allow_inf_nan=False)]


class Coordinates(BaseModel):
    lat: Optional[Coordinate] = None
    lng: Optional[Coordinate] = None


class FriendCreate(BaseModel):
    """
    Create payload. Required fields are optional here so that a missing
    field is reported by the route as a 400 rather than a schema error.
    """

    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    location: Optional[str] = None
    notes: Optional[str] = None
    other_cities: Optional[str] = Field(default=None, alias="otherCities")
    coords: Optional[Coordinates] = None
    display_name: Optional[str] = Field(default=None, alias="displayName")

    @field_validator("name", "location")
    @classmethod
    def _strip_required(cls, value: Optional[str]) -> Optional[str]:
        return value.strip() if value is not None else None

    @field_validator("notes", "other_cities", "display_name")
    @classmethod
    def _blank_to_none(cls, value: Optional[str]) -> Optional[str]:
        return value or None

    def is_complete(self) -> bool:
        return bool(
            self.name
            and self.location
            and self.coords is not None
            and self.coords.lat is not None
            and self.coords.lng is not None
        )


class CoordinatesResponse(BaseModel):
    lat: float
    lng: float


class PublicFriendResponse(BaseModel):
    id: int
    name: str
    location: str
    coords: CoordinatesResponse
    displayName: Optional[str] = None
    createdAt: datetime


class FriendResponse(PublicFriendResponse):
    notes: Optional[str] = None
    otherCities: Optional[str] = None


class FriendCreatedResponse(FriendResponse):
    message: str = "Friend added successfully"


class MessageResponse(BaseModel):
    message: str


class ClearFriendsResponse(MessageResponse):
    deleted: int


class StatsResponse(BaseModel):
    totalFriends: int
    friendsWithNotes: int
    friendsWithRecommendations: int
