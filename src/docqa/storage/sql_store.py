"""SQLAlchemy-backed document store.

Works against any SQLAlchemy URL; PostgreSQL in production, SQLite for
local runs and tests.  Timestamps are stored as naive UTC and returned
timezone-aware.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone

from sqlalchemy import DateTime, Enum, Integer, String, create_engine, delete, func, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker

from docqa.exceptions import StorageError
from docqa.models import Document, DocumentStatus, DocumentVisibility, utcnow
from docqa.storage.base import DocumentStore


class Base(DeclarativeBase):
    pass


class DocumentRecord(Base):
    __tablename__ = "documents"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    owner_id: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    filename: Mapped[str] = mapped_column(String(512), nullable=False)
    original_name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_size: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    mime_type: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[DocumentStatus] = mapped_column(
        Enum(DocumentStatus, native_enum=False), nullable=False, index=True
    )
    chunk_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    visibility: Mapped[DocumentVisibility] = mapped_column(
        Enum(DocumentVisibility, native_enum=False), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


def _to_db(value: datetime) -> datetime:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.replace(tzinfo=None)


def _from_db(value: datetime) -> datetime:
    return value.replace(tzinfo=timezone.utc)


def _to_domain(record: DocumentRecord) -> Document:
    return Document(
        id=record.id,
        owner_id=record.owner_id,
        filename=record.filename,
        original_name=record.original_name,
        file_size=record.file_size,
        mime_type=record.mime_type,
        status=record.status,
        chunk_count=record.chunk_count,
        visibility=record.visibility,
        created_at=_from_db(record.created_at),
        updated_at=_from_db(record.updated_at),
    )


class SqlDocumentStore(DocumentStore):
    """Document store on a relational database.

    Parameters
    ----------
    engine:
        A ready SQLAlchemy engine.  Tables are created on construction
        when ``create_tables`` is true.
    """

    def __init__(self, engine: Engine, *, create_tables: bool = True) -> None:
        self._engine = engine
        self._session_factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
        if create_tables:
            Base.metadata.create_all(engine)

    @classmethod
    def from_url(cls, url: str) -> SqlDocumentStore:
        return cls(create_engine(url, pool_pre_ping=True))

    @contextmanager
    def _session(self) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            raise StorageError(f"Database operation failed: {exc}") from exc
        finally:
            session.close()

    def create(self, document: Document) -> Document:
        with self._session() as session:
            session.add(
                DocumentRecord(
                    id=document.id,
                    owner_id=document.owner_id,
                    filename=document.filename,
                    original_name=document.original_name,
                    file_size=document.file_size,
                    mime_type=document.mime_type,
                    status=document.status,
                    chunk_count=document.chunk_count,
                    visibility=document.visibility,
                    created_at=_to_db(document.created_at),
                    updated_at=_to_db(document.updated_at),
                )
            )
        return document

    def update_status(self, document_id: str, status: DocumentStatus) -> bool:
        if not DocumentStatus.PROCESSING.can_transition_to(status):
            return False
        with self._session() as session:
            result = session.execute(
                update(DocumentRecord)
                .where(
                    DocumentRecord.id == document_id,
                    DocumentRecord.status == DocumentStatus.PROCESSING,
                )
                .values(status=status, updated_at=_to_db(utcnow()))
            )
            return result.rowcount == 1

    def update_chunk_count(self, document_id: str, count: int) -> None:
        with self._session() as session:
            session.execute(
                update(DocumentRecord)
                .where(
                    DocumentRecord.id == document_id,
                    DocumentRecord.status == DocumentStatus.PROCESSING,
                )
                .values(chunk_count=count, updated_at=_to_db(utcnow()))
            )

    def get(self, document_id: str) -> Document | None:
        with self._session() as session:
            record = session.get(DocumentRecord, document_id)
            return _to_domain(record) if record else None

    def find_by_id_and_owner(self, document_id: str, owner_id: str) -> Document | None:
        with self._session() as session:
            record = session.scalars(
                select(DocumentRecord).where(
                    DocumentRecord.id == document_id,
                    DocumentRecord.owner_id == owner_id,
                )
            ).first()
            return _to_domain(record) if record else None

    def list(self, owner_id: str, page: int, limit: int) -> tuple[list[Document], int]:
        with self._session() as session:
            records = session.scalars(
                select(DocumentRecord)
                .where(DocumentRecord.owner_id == owner_id)
                .order_by(DocumentRecord.created_at.desc())
                .limit(limit)
                .offset((page - 1) * limit)
            ).all()
            total = session.scalar(
                select(func.count()).select_from(DocumentRecord).where(DocumentRecord.owner_id == owner_id)
            )
            return [_to_domain(r) for r in records], int(total or 0)

    def delete(self, document_id: str) -> None:
        with self._session() as session:
            session.execute(delete(DocumentRecord).where(DocumentRecord.id == document_id))

    def completed_ids(self) -> set[str]:
        with self._session() as session:
            return set(
                session.scalars(
                    select(DocumentRecord.id).where(DocumentRecord.status == DocumentStatus.COMPLETED)
                )
            )

    def list_stale(self, status: DocumentStatus, older_than: datetime) -> list[Document]:
        with self._session() as session:
            records = session.scalars(
                select(DocumentRecord).where(
                    DocumentRecord.status == status,
                    DocumentRecord.updated_at < _to_db(older_than),
                )
            ).all()
            return [_to_domain(r) for r in records]
