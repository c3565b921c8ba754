"""SQLAlchemy ORM models for users, collections and their contents."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .database import Base


def _new_id() -> str:
    return str(uuid.uuid4())


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    username: Mapped[str | None] = mapped_column(String(120), unique=True, nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True)
    recommendations_enabled: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    collections: Mapped[list["Collection"]] = relationship(
        back_populates="owner", cascade="all, delete-orphan"
    )


class Collection(Base):
    """A user-curated list of movies and series."""

    __tablename__ = "collections"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(255))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    owner_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.id", ondelete="CASCADE"), index=True
    )
    shareable_id: Mapped[str | None] = mapped_column(String(64), unique=True, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    owner: Mapped[User] = relationship(back_populates="collections")
    items: Mapped[list["CollectionItem"]] = relationship(
        back_populates="collection", cascade="all, delete-orphan"
    )
    collaborators: Mapped[list["CollectionCollaborator"]] = relationship(
        back_populates="collection", cascade="all, delete-orphan"
    )


class CollectionCollaborator(Base):
    __tablename__ = "collection_collaborators"
    __table_args__ = (
        UniqueConstraint("collection_id", "user_id", name="uq_collaborator_collection_user"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    collection_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("collections.id", ondelete="CASCADE"), index=True
    )
    user_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.id", ondelete="CASCADE"), index=True
    )
    permission: Mapped[str] = mapped_column(String(16), default="view")
    added_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    collection: Mapped[Collection] = relationship(back_populates="collaborators")


class CollectionItem(Base):
    """A title saved to a collection.

    ``movie_id`` holds the TMDB id for movies and ``<id>tv`` for series.
    """

    __tablename__ = "collection_movies"
    __table_args__ = (
        UniqueConstraint("collection_id", "movie_id", name="uq_collection_movie"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    collection_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("collections.id", ondelete="CASCADE"), index=True
    )
    movie_id: Mapped[str] = mapped_column(String(32), index=True)
    is_movie: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    added_by_user_id: Mapped[str | None] = mapped_column(
        String(64), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    added_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    collection: Mapped[Collection] = relationship(back_populates="items")


class RecommendationSource(Base):
    """Marks a collection as a taste signal for a user's recommendations."""

    __tablename__ = "user_recommendation_collections"
    __table_args__ = (
        UniqueConstraint("user_id", "collection_id", name="uq_recommendation_source"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.id", ondelete="CASCADE"), index=True
    )
    collection_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("collections.id", ondelete="CASCADE")
    )
    added_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
