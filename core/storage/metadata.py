"""
Relational metadata for knowledge bases and their uploaded files.

Tables (SQLModel):
    knowledge_base  id, name (unique), created_at, updated_at
    file            id, kb_id, filename, bytes, purpose, created_at, updated_at

Timestamps are Unix seconds. Every SQLAlchemy failure surfaces as StoreError.
"""

import logging
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Field, Session, SQLModel, and_, create_engine, select

from ..errors import StoreError

logger = logging.getLogger("ragserve.metadata")

FILE_PURPOSE = "embedding"


def _now() -> int:
    return int(time.time())


class KnowledgeBase(SQLModel, table=True):
    __tablename__ = "knowledge_base"
    # Ids are never reused, so a deleted kb_<id> cannot be inherited
    __table_args__ = {"sqlite_autoincrement": True}

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True, unique=True)
    created_at: int = Field(default_factory=_now)
    updated_at: int = Field(default_factory=_now)


class KnowledgeFile(SQLModel, table=True):
    __tablename__ = "file"
    __table_args__ = {"sqlite_autoincrement": True}

    id: Optional[int] = Field(default=None, primary_key=True)
    kb_id: int = Field(index=True)
    filename: str
    bytes: int = 0
    purpose: str = FILE_PURPOSE
    created_at: int = Field(default_factory=_now)
    updated_at: int = Field(default_factory=_now)


class MetadataStore:
    """
    Args:
        database_url: SQLAlchemy URL, e.g. sqlite:///data/ragserve.db
    """

    def __init__(self, database_url: str):
        connect_args = {}
        if database_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
            db_path = database_url.split(":///", 1)[-1]
            if db_path and db_path != ":memory:" and ":///" in database_url:
                Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self.engine = create_engine(database_url, connect_args=connect_args)
        try:
            SQLModel.metadata.create_all(self.engine)
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to initialize metadata store {database_url}: {e}") from e

    @contextmanager
    def _session(self) -> Iterator[Session]:
        try:
            with Session(self.engine, expire_on_commit=False) as session:
                yield session
        except SQLAlchemyError as e:
            raise StoreError(f"Metadata store failure: {e}") from e

    # ---- knowledge bases ----
    def create_kb(self, name: str) -> Tuple[KnowledgeBase, bool]:
        """Insert a knowledge base. Returns (kb, existed)."""
        with self._session() as session:
            existing = session.exec(select(KnowledgeBase).where(KnowledgeBase.name == name)).first()
            if existing is not None:
                return existing, True
            kb = KnowledgeBase(name=name)
            session.add(kb)
            session.commit()
            session.refresh(kb)
            logger.debug(f"Inserted knowledge_base id={kb.id} name={name}")
            return kb, False

    def list_kbs(self) -> List[KnowledgeBase]:
        with self._session() as session:
            return list(session.exec(select(KnowledgeBase).order_by(KnowledgeBase.id)).all())

    def get_kb(self, kb_id: int) -> Optional[KnowledgeBase]:
        with self._session() as session:
            return session.get(KnowledgeBase, kb_id)

    def delete_kb(self, kb_id: int) -> Optional[KnowledgeBase]:
        """Delete the knowledge base row together with its file rows."""
        with self._session() as session:
            kb = session.get(KnowledgeBase, kb_id)
            if kb is None:
                return None
            for row in session.exec(select(KnowledgeFile).where(KnowledgeFile.kb_id == kb_id)).all():
                session.delete(row)
            session.delete(kb)
            session.commit()
            return kb

    # ---- files ----
    def upsert_file(self, kb_id: int, filename: str, size: int) -> KnowledgeFile:
        """Record an upload; a second upload of the same filename replaces the row's contents."""
        with self._session() as session:
            row = session.exec(
                select(KnowledgeFile).where(
                    and_(KnowledgeFile.kb_id == kb_id, KnowledgeFile.filename == filename)
                )
            ).first()
            if row is None:
                row = KnowledgeFile(kb_id=kb_id, filename=filename, bytes=size)
            else:
                row.bytes = size
                row.updated_at = _now()
            session.add(row)
            session.commit()
            session.refresh(row)
            return row

    def list_files(self, kb_id: int) -> List[KnowledgeFile]:
        with self._session() as session:
            return list(
                session.exec(
                    select(KnowledgeFile).where(KnowledgeFile.kb_id == kb_id).order_by(KnowledgeFile.id)
                ).all()
            )

    def get_file(self, kb_id: int, file_id: int) -> Optional[KnowledgeFile]:
        with self._session() as session:
            row = session.get(KnowledgeFile, file_id)
            if row is None or row.kb_id != kb_id:
                return None
            return row

    def delete_file(self, kb_id: int, file_id: int) -> Optional[KnowledgeFile]:
        with self._session() as session:
            row = session.get(KnowledgeFile, file_id)
            if row is None or row.kb_id != kb_id:
                return None
            session.delete(row)
            session.commit()
            return row
