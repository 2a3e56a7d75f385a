# =============================================================================
# Database Models - SQLAlchemy ORM
# =============================================================================
#
# SCHEMA OVERVIEW:
#
# ┌──────────────────┐       ┌──────────────────────────────────────┐
# │  documents       │       │  questions                           │
# ├──────────────────┤       ├──────────────────────────────────────┤
# │ id (PK, uuid)    │──1:N─▶│ id (PK, uuid)                        │
# │ title            │       │ document_id (FK → documents.id,      │
# │ company_ticker   │       │              ON DELETE CASCADE)      │
# │ document_type    │       │ question (text)                      │
# │ filing_date      │       │ answer (text)                        │
# │ content_preview  │       │ citations (jsonb, never null)        │
# │ extracted_text   │       │ processing_time (seconds)            │
# │ file_url         │       │ model                                │
# │ file_name        │       │ created_at / updated_at              │
# │ file_size        │       └──────────────────────────────────────┘
# │ storage_key      │
# │ status (CHECK)   │
# │ error_message    │
# │ created_at       │
# │ updated_at       │
# └──────────────────┘
#
# 1. `status` is stored as VARCHAR with a CHECK constraint rather than a
#    native PostgreSQL enum type, so the allowed values live with the table.
#
# 2. `updated_at` is set by the ORM on every UPDATE and, on PostgreSQL, also
#    by a BEFORE UPDATE trigger so that writes from outside the application
#    keep it current.
#
# 3. Questions are removed by the database when their document is deleted
#    (FK ON DELETE CASCADE). The ORM relationship uses passive_deletes so it
#    never loads the collection just to delete it.
# =============================================================================

import enum
import uuid
from datetime import UTC, date, datetime

from sqlalchemy import (
    DDL,
    JSON,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
    event,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """SQLAlchemy declarative base class for all ORM models."""

    pass


def _utcnow() -> datetime:
    return datetime.now(UTC)


class DocumentStatus(str, enum.Enum):
    """
    Extraction state of a document.

    State machine:
        PROCESSING → READY
                   → ERROR

    READY and ERROR are terminal.
    """

    PROCESSING = "processing"  # Stored, extraction not finished
    READY = "ready"            # Text extracted, available for questions
    ERROR = "error"            # Extraction failed (see error_message)

    @property
    def is_terminal(self) -> bool:
        return self is not DocumentStatus.PROCESSING


# JSONB on PostgreSQL, plain JSON elsewhere.
_JSONList = JSON().with_variant(JSONB(), "postgresql")


class Document(Base):
    """An uploaded SEC filing plus its extraction status and metadata."""

    __tablename__ = "documents"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    title: Mapped[str] = mapped_column(String(500), nullable=False)
    company_ticker: Mapped[str | None] = mapped_column(String(16), nullable=True)
    # e.g. "10-K", "10-Q", "8-K"
    document_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    filing_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    # First N characters of the extracted text, whitespace-collapsed
    content_preview: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Full extracted text used to build prompts. Deferred: listings never
    # need it and it can be megabytes for a 10-K.
    extracted_text: Mapped[str | None] = mapped_column(
        Text, nullable=True, deferred=True,
    )
    page_count: Mapped[int | None] = mapped_column(Integer, nullable=True)

    file_url: Mapped[str] = mapped_column(Text, nullable=False)
    file_name: Mapped[str] = mapped_column(String(500), nullable=False)
    file_size: Mapped[int] = mapped_column(Integer, nullable=False)
    content_type: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # Object-store key; null if the file lives outside the configured bucket
    storage_key: Mapped[str | None] = mapped_column(Text, nullable=True)

    status: Mapped[DocumentStatus] = mapped_column(
        Enum(
            DocumentStatus,
            name="document_status",
            native_enum=False,
            create_constraint=True,
            length=20,
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
        default=DocumentStatus.PROCESSING,
    )

    # Human-readable note when status == ERROR
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        server_default=func.now(),
        onupdate=_utcnow,
        nullable=False,
    )

    questions: Mapped[list["Question"]] = relationship(
        "Question",
        back_populates="document",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Document(id={self.id}, title='{self.title}', status={self.status})>"


class Question(Base):
    """A question asked against one document, with its answer and citations."""

    __tablename__ = "questions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    document_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("documents.id", ondelete="CASCADE"),
        nullable=False,
    )

    question: Mapped[str] = mapped_column(Text, nullable=False)
    answer: Mapped[str] = mapped_column(Text, nullable=False)

    # Ordered list of citation dicts: {quote, start, end, page, note}
    citations: Mapped[list[dict]] = mapped_column(
        _JSONList, nullable=False, default=list,
    )

    # Wall-clock seconds spent answering (informational)
    processing_time: Mapped[float | None] = mapped_column(Float, nullable=True)

    # Model identifier reported by the LLM API
    model: Mapped[str | None] = mapped_column(String(200), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        server_default=func.now(),
        onupdate=_utcnow,
        nullable=False,
    )

    document: Mapped["Document"] = relationship("Document", back_populates="questions")

    def __repr__(self) -> str:
        return f"<Question(id={self.id}, document_id={self.document_id})>"


# =============================================================================
# Indexes
# =============================================================================
# Listings sort by created_at DESC (id DESC as tiebreak); questions are
# filtered by document_id.
# =============================================================================

document_created_idx = Index("idx_documents_created_at", Document.created_at)
document_status_idx = Index("idx_documents_status", Document.status)
question_document_idx = Index("idx_questions_document_id", Question.document_id)
question_created_idx = Index("idx_questions_created_at", Question.created_at)


# =============================================================================
# updated_at Triggers (PostgreSQL only)
# =============================================================================
# One shared plpgsql function, one BEFORE UPDATE trigger per table. Each DDL
# holds a single statement: asyncpg runs statements as prepared statements.
# =============================================================================

_set_updated_at_fn = DDL(
    "CREATE OR REPLACE FUNCTION set_updated_at() RETURNS trigger AS $$ "
    "BEGIN NEW.updated_at = now(); RETURN NEW; END; "
    "$$ LANGUAGE plpgsql"
)

event.listen(
    Base.metadata,
    "before_create",
    _set_updated_at_fn.execute_if(dialect="postgresql"),
)

for _table in (Document.__table__, Question.__table__):
    event.listen(
        _table,
        "after_create",
        DDL(
            "DROP TRIGGER IF EXISTS %(table)s_set_updated_at ON %(fullname)s"
        ).execute_if(dialect="postgresql"),
    )
    event.listen(
        _table,
        "after_create",
        DDL(
            "CREATE TRIGGER %(table)s_set_updated_at "
            "BEFORE UPDATE ON %(fullname)s "
            "FOR EACH ROW EXECUTE FUNCTION set_updated_at()"
        ).execute_if(dialect="postgresql"),
    )
