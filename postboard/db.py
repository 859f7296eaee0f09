"""
Post store abstraction with an SQLAlchemy implementation and an in-memory one.
"""

from __future__ import annotations

import dataclasses
import itertools
import logging
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Iterator, Optional, Protocol

from sqlalchemy import Column, DateTime, Integer, String, Text, create_engine, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

logger = logging.getLogger(__name__)


class StorageError(RuntimeError):
    """Raised when the backing store cannot be reached or a query fails."""


class PostStore(Protocol):
    """Interface for post persistence."""

    def connect(self) -> None:
        ...

    def close(self) -> None:
        ...

    def list_posts(self, user_id: str | None = None) -> list["PostRecord"]:
        ...

    def get_post(self, post_id: str) -> Optional["PostRecord"]:
        ...

    def create_post(
        self,
        *,
        title: str,
        content: str,
        user_id: str,
        user_name: str,
        created_at: datetime | None = None,
    ) -> "PostRecord":
        ...

    def update_post(
        self, post_id: str, *, title: str, content: str, user_name: str
    ) -> Optional["PostRecord"]:
        ...

    def delete_post(self, post_id: str) -> bool:
        ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_post_id() -> str:
    return uuid.uuid4().hex


@dataclass
class PostRecord:
    id: str
    title: str
    content: str
    user_id: str
    user_name: str
    created_at: datetime


class InMemoryPostStore:
    """Simple in-memory post store for development and tests."""

    def __init__(self):
        self.posts: Dict[str, PostRecord] = {}
        self._sequence: Dict[str, int] = {}
        self._counter = itertools.count()
        self.connected = False

    def connect(self) -> None:
        self.connected = True

    def close(self) -> None:
        self.connected = False

    def list_posts(self, user_id: str | None = None) -> list[PostRecord]:
        posts = [
            post
            for post in self.posts.values()
            if user_id is None or post.user_id == user_id
        ]
        posts.sort(
            key=lambda post: (post.created_at, self._sequence[post.id]),
            reverse=True,
        )
        return [dataclasses.replace(post) for post in posts]

    def get_post(self, post_id: str) -> Optional[PostRecord]:
        post = self.posts.get(post_id)
        return dataclasses.replace(post) if post else None

    def create_post(
        self,
        *,
        title: str,
        content: str,
        user_id: str,
        user_name: str,
        created_at: datetime | None = None,
    ) -> PostRecord:
        record = PostRecord(
            id=_new_post_id(),
            title=title,
            content=content,
            user_id=user_id,
            user_name=user_name,
            created_at=created_at or _utcnow(),
        )
        self.posts[record.id] = record
        self._sequence[record.id] = next(self._counter)
        return dataclasses.replace(record)

    def update_post(
        self, post_id: str, *, title: str, content: str, user_name: str
    ) -> Optional[PostRecord]:
        post = self.posts.get(post_id)
        if not post:
            return None
        post.title = title
        post.content = content
        post.user_name = user_name
        return dataclasses.replace(post)

    def delete_post(self, post_id: str) -> bool:
        if post_id not in self.posts:
            return False
        del self.posts[post_id]
        del self._sequence[post_id]
        return True


class SqlPostStore:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).

    The engine is created on the first ``connect()`` (or the first operation)
    and reused until ``close()``.
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for SqlPostStore")
        self.database_url = database_url
        self.engine = None
        self.Session = None

    def connect(self) -> None:
        if self.engine is not None:
            return
        try:
            engine = create_engine(
                self.database_url,
                future=True,
                pool_pre_ping=True,
                pool_recycle=1800,
            )
            Base.metadata.create_all(engine)
        except SQLAlchemyError as exc:
            raise StorageError(f"Could not connect to post store: {exc}") from exc
        self.engine = engine
        self.Session = sessionmaker(
            bind=engine, class_=Session, expire_on_commit=False, future=True
        )
        logger.info("Connected to post store (%s)", engine.url.get_backend_name())

    def close(self) -> None:
        if self.engine is None:
            return
        self.engine.dispose()
        self.engine = None
        self.Session = None

    @contextmanager
    def _session(self) -> Iterator[Session]:
        self.connect()
        try:
            with self.Session() as session:
                yield session
        except SQLAlchemyError as exc:
            raise StorageError(str(exc)) from exc

    def _to_record(self, row: "PostRow") -> PostRecord:
        created_at = row.created_at
        # SQLite drops tzinfo on the way back.
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        return PostRecord(
            id=row.id,
            title=row.title,
            content=row.content,
            user_id=row.user_id,
            user_name=row.user_name,
            created_at=created_at,
        )

    def _get_row(self, session: Session, post_id: str) -> Optional["PostRow"]:
        stmt = select(PostRow).where(PostRow.id == post_id)
        return session.execute(stmt).scalar_one_or_none()

    def list_posts(self, user_id: str | None = None) -> list[PostRecord]:
        with self._session() as session:
            stmt = select(PostRow)
            if user_id is not None:
                stmt = stmt.where(PostRow.user_id == user_id)
            stmt = stmt.order_by(PostRow.created_at.desc(), PostRow.seq.desc())
            rows = session.execute(stmt).scalars().all()
            return [self._to_record(row) for row in rows]

    def get_post(self, post_id: str) -> Optional[PostRecord]:
        with self._session() as session:
            row = self._get_row(session, post_id)
            return self._to_record(row) if row else None

    def create_post(
        self,
        *,
        title: str,
        content: str,
        user_id: str,
        user_name: str,
        created_at: datetime | None = None,
    ) -> PostRecord:
        with self._session() as session:
            row = PostRow(
                id=_new_post_id(),
                title=title,
                content=content,
                user_id=user_id,
                user_name=user_name,
                created_at=created_at or _utcnow(),
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return self._to_record(row)

    def update_post(
        self, post_id: str, *, title: str, content: str, user_name: str
    ) -> Optional[PostRecord]:
        with self._session() as session:
            row = self._get_row(session, post_id)
            if not row:
                return None
            row.title = title
            row.content = content
            row.user_name = user_name
            session.commit()
            session.refresh(row)
            return self._to_record(row)

    def delete_post(self, post_id: str) -> bool:
        with self._session() as session:
            row = self._get_row(session, post_id)
            if not row:
                return False
            session.delete(row)
            session.commit()
            return True


Base = declarative_base()


class PostRow(Base):
    __tablename__ = "posts"

    # Insertion order, used to break createdAt ties.
    seq = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String(32), nullable=False, unique=True, index=True)
    title = Column(Text, nullable=False)
    content = Column(Text, nullable=False)
    user_id = Column(String, nullable=False, index=True)
    user_name = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)
