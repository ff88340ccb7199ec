"""
HTTP routes for the friend map API.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from friendmap.db import DbClient, StorageError
from friendmap.dependencies import get_db_client, require_admin
from friendmap.schemas import (
    ClearFriendsResponse,
    FriendCreate,
    FriendCreatedResponse,
    FriendResponse,
    MessageResponse,
    PublicFriendResponse,
    StatsResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()

MISSING_FIELDS_MESSAGE = "Name, location, and coordinates are required"

# SQLite INTEGER PRIMARY KEY range.
MAX_FRIEND_ID = 2**63 - 1


def _parse_friend_id(raw: str) -> int | None:
    """Return the id, or None when no stored friend could have it."""
    try:
        friend_id = int(raw)
    except ValueError:
        return None
    if not -MAX_FRIEND_ID - 1 <= friend_id <= MAX_FRIEND_ID:
        return None
    return friend_id


@router.get(
    "/friends",
    response_model=list[FriendResponse],
    dependencies=[Depends(require_admin)],
)
def list_friends(db: DbClient = Depends(get_db_client)):
    """Every friend including notes, for the admin panel."""
    try:
        records = db.list_friends()
    except StorageError:
        logger.exception("Error fetching friends")
        raise HTTPException(status_code=500, detail="Failed to fetch friends")
    return [record.as_dict() for record in records]


@router.get("/friends/public", response_model=list[PublicFriendResponse])
def list_public_friends(db: DbClient = Depends(get_db_client)):
    """Friends for the map; notes and recommended cities are dropped by the response model."""
    try:
        records = db.list_friends()
    except StorageError:
        logger.exception("Error fetching public friends")
        raise HTTPException(status_code=500, detail="Failed to fetch friends")
    return [record.as_dict() for record in records]


@router.post("/friends", response_model=FriendCreatedResponse)
def create_friend(payload: FriendCreate, db: DbClient = Depends(get_db_client)):
    if not payload.is_complete():
        raise HTTPException(status_code=400, detail=MISSING_FIELDS_MESSAGE)
    try:
        record = db.create_friend(
            name=payload.name,
            location=payload.location,
            latitude=payload.coords.lat,
            longitude=payload.coords.lng,
            notes=payload.notes,
            other_cities=payload.other_cities,
            display_name=payload.display_name,
        )
    except StorageError:
        logger.exception("Error adding friend")
        raise HTTPException(status_code=500, detail="Failed to add friend")
    logger.info("Added friend %s (%s)", record.id, record.location)
    return FriendCreatedResponse(**record.as_dict())


@router.delete(
    "/friends/{friend_id}",
    response_model=MessageResponse,
    dependencies=[Depends(require_admin)],
)
def delete_friend(friend_id: str, db: DbClient = Depends(get_db_client)):
    parsed_id = _parse_friend_id(friend_id)
    if parsed_id is None:
        raise HTTPException(status_code=404, detail="Friend not found")
    try:
        deleted = db.delete_friend(parsed_id)
    except StorageError:
        logger.exception("Error deleting friend %s", friend_id)
        raise HTTPException(status_code=500, detail="Failed to delete friend")
    if not deleted:
        raise HTTPException(status_code=404, detail="Friend not found")
    return MessageResponse(message="Friend deleted successfully")


@router.delete(
    "/friends",
    response_model=ClearFriendsResponse,
    dependencies=[Depends(require_admin)],
)
def clear_friends(db: DbClient = Depends(get_db_client)):
    try:
        count = db.clear_friends()
    except StorageError:
        logger.exception("Error clearing friends")
        raise HTTPException(status_code=500, detail="Failed to clear friends")
    logger.info("Cleared %d friends", count)
    return ClearFriendsResponse(message=f"Deleted {count} friends", deleted=count)


@router.get(
    "/stats",
    response_model=StatsResponse,
    dependencies=[Depends(require_admin)],
)
def get_stats(db: DbClient = Depends(get_db_client)):
    try:
        stats = db.get_stats()
    except StorageError:
        logger.exception("Error getting stats")
        raise HTTPException(status_code=500, detail="Failed to get stats")
    return StatsResponse(**stats.as_dict())
