"""
Database abstraction for the friends table and an in-memory test implementation.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterator, List, Optional, Protocol

from sqlalchemy import (
    Column,
    DateTime,
    Float,
    Integer,
    Text,
    and_,
    case,
    create_engine,
    delete,
    func,
    select,
)
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool


class StorageError(RuntimeError):
    """Raised when a database operation fails."""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DbClient(Protocol):
    """Interface for database access."""

    def list_friends(self) -> List["FriendRecord"]:
        ...

    def create_friend(
        self,
        *,
        name: str,
        location: str,
        latitude: float,
        longitude: float,
        notes: Optional[str] = None,
        other_cities: Optional[str] = None,
        display_name: Optional[str] = None,
    ) -> "FriendRecord":
        ...

    def delete_friend(self, friend_id: int) -> bool:
        ...

    def clear_friends(self) -> int:
        ...

    def get_stats(self) -> "FriendStats":
        ...

    def close(self) -> None:
        ...


@dataclass
class FriendRecord:
    id: int
    name: str
    location: str
    latitude: float
    longitude: float
    notes: Optional[str] = None
    other_cities: Optional[str] = None
    display_name: Optional[str] = None
    created_at: datetime = field(default_factory=_utcnow)

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "location": self.location,
            "notes": self.notes,
            "otherCities": self.other_cities,
            "coords": {"lat": self.latitude, "lng": self.longitude},
            "displayName": self.display_name,
            "createdAt": self.created_at,
        }


@dataclass
class FriendStats:
    total_friends: int = 0
    friends_with_notes: int = 0
    friends_with_recommendations: int = 0

    def as_dict(self) -> dict:
        return {
            "totalFriends": self.total_friends,
            "friendsWithNotes": self.friends_with_notes,
            "friendsWithRecommendations": self.friends_with_recommendations,
        }


def _sort_newest_first(records: List[FriendRecord]) -> List[FriendRecord]:
    return sorted(records, key=lambda r: (r.created_at, r.id), reverse=True)


class InMemoryDbClient:
    """Simple in-memory database for development and tests."""

    def __init__(self):
        self.friends: Dict[int, FriendRecord] = {}
        self._next_id = 1

    def list_friends(self) -> List[FriendRecord]:
        return _sort_newest_first(list(self.friends.values()))

    def create_friend(
        self,
        *,
        name: str,
        location: str,
        latitude: float,
        longitude: float,
        notes: Optional[str] = None,
        other_cities: Optional[str] = None,
        display_name: Optional[str] = None,
    ) -> FriendRecord:
        record = FriendRecord(
            id=self._next_id,
            name=name,
            location=location,
            latitude=latitude,
            longitude=longitude,
            notes=notes,
            other_cities=other_cities,
            display_name=display_name,
        )
        self._next_id += 1
        self.friends[record.id] = record
        return record

    def delete_friend(self, friend_id: int) -> bool:
        return self.friends.pop(friend_id, None) is not None

    def clear_friends(self) -> int:
        count = len(self.friends)
        self.friends.clear()
        return count

    def get_stats(self) -> FriendStats:
        records = self.friends.values()
        return FriendStats(
            total_friends=len(records),
            friends_with_notes=sum(1 for r in records if r.notes),
            friends_with_recommendations=sum(1 for r in records if r.other_cities),
        )

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.friends.clear()
        self._next_id = 1

    def close(self) -> None:
        pass


class SqlDbClient:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL; the
    default deployment uses a SQLite file.
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for SqlDbClient")
        url = make_url(database_url)
        engine_kwargs: dict = {"future": True}
        if url.get_backend_name() == "sqlite":
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            if url.database in (None, "", ":memory:"):
                # Every thread must see the same in-memory database.
                engine_kwargs["poolclass"] = StaticPool
        else:
            engine_kwargs.update(pool_pre_ping=True, pool_recycle=1800)
        self.engine = create_engine(url, **engine_kwargs)
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        try:
            Base.metadata.create_all(self.engine)
        except SQLAlchemyError as exc:
            raise StorageError("Failed to create friends table") from exc

    @contextmanager
    def _session(self, action: str) -> Iterator[Session]:
        try:
            with self.Session() as session:
                yield session
        except SQLAlchemyError as exc:
            raise StorageError(f"Database error while {action}") from exc

    def _to_record(self, row: "FriendRow") -> FriendRecord:
        created_at = row.created_at
        if created_at is not None and created_at.tzinfo is None:
            # SQLite hands back naive datetimes.
            created_at = created_at.replace(tzinfo=timezone.utc)
        return FriendRecord(
            id=row.id,
            name=row.name,
            location=row.location,
            latitude=row.latitude,
            longitude=row.longitude,
            notes=row.notes,
            other_cities=row.other_cities,
            display_name=row.display_name,
            created_at=created_at,
        )

    def list_friends(self) -> List[FriendRecord]:
        stmt = select(FriendRow).order_by(
            FriendRow.created_at.desc(), FriendRow.id.desc()
        )
        with self._session("listing friends") as session:
            rows = session.execute(stmt).scalars().all()
            return [self._to_record(row) for row in rows]

    def create_friend(
        self,
        *,
        name: str,
        location: str,
        latitude: float,
        longitude: float,
        notes: Optional[str] = None,
        other_cities: Optional[str] = None,
        display_name: Optional[str] = None,
    ) -> FriendRecord:
        with self._session("adding a friend") as session:
            row = FriendRow(
                name=name,
                location=location,
                latitude=latitude,
                longitude=longitude,
                notes=notes,
                other_cities=other_cities,
                display_name=display_name,
                created_at=_utcnow(),
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return self._to_record(row)

    def delete_friend(self, friend_id: int) -> bool:
        with self._session("deleting a friend") as session:
            result = session.execute(delete(FriendRow).where(FriendRow.id == friend_id))
            session.commit()
            return result.rowcount > 0

    def clear_friends(self) -> int:
        with self._session("clearing friends") as session:
            result = session.execute(delete(FriendRow))
            session.commit()
            return result.rowcount or 0

    def get_stats(self) -> FriendStats:
        stmt = select(
            func.count(),
            func.count(case((_is_filled(FriendRow.notes), 1))),
            func.count(case((_is_filled(FriendRow.other_cities), 1))),
        ).select_from(FriendRow)
        with self._session("computing stats") as session:
            total, with_notes, with_recommendations = session.execute(stmt).one()
            return FriendStats(
                total_friends=total,
                friends_with_notes=with_notes,
                friends_with_recommendations=with_recommendations,
            )

    def close(self) -> None:
        self.engine.dispose()


def _is_filled(column):
    return and_(column.is_not(None), column != "")


Base = declarative_base()


class FriendRow(Base):
    __tablename__ = "friends"
    # Ids are never reused after a delete.
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(Text, nullable=False)
    location = Column(Text, nullable=False)
    notes = Column(Text, nullable=True)
    other_cities = Column("otherCities", Text, nullable=True)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    display_name = Column("displayName", Text, nullable=True)
    created_at = Column(
        "timestamp",
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=func.current_timestamp(),
    )
