"""
SQLAlchemy 2.0 Models for StudyHub.

Uses modern declarative syntax with Mapped[] type annotations.
The data access layer never loads these as ORM objects; it works with
Base.metadata.tables by name, so the models double as the table catalogue.
"""

from datetime import datetime
from enum import Enum as PyEnum
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import CITEXT, TIMESTAMP, UUID as PGUUID
from sqlalchemy.orm import Mapped, mapped_column

from studyhub.db.base import Base


# =============================================================================
# ENUMS
# =============================================================================


class ApprovalStatus(str, PyEnum):
    """Moderation status of an uploaded note."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class AuthProvider(str, PyEnum):
    """How an identity signs in."""

    EMAIL = "email"
    GOOGLE = "google"


# =============================================================================
# MODELS
# =============================================================================


class Student(Base):
    """
    Student profile.

    Academic fields stay NULL until onboarding; a profile missing any of
    them is treated as "needs onboarding".
    """

    __tablename__ = "students"
    __table_args__ = (
        CheckConstraint(
            "academic_year IS NULL OR (academic_year >= 1 AND academic_year <= 6)",
            name="valid_academic_year",
        ),
        CheckConstraint(
            "semester IS NULL OR (semester >= 1 AND semester <= 2)",
            name="valid_semester",
        ),
    )

    id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True), primary_key=True, default=uuid4
    )
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(
        CITEXT(), unique=True, index=True, nullable=True
    )
    academic_year: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    semester: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    branch: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    is_admin: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=text("NOW()"), nullable=False
    )


class AuthIdentity(Base):
    """
    Sign-in identity linked to a student.

    provider='email' rows carry a password hash; provider='google' rows hold
    Google's 'sub' claim and never a password. student_id carries no foreign
    key: the identity outlives a profile reset, which deletes the students row.
    """

    __tablename__ = "auth_identities"
    __table_args__ = (
        UniqueConstraint("provider", "provider_user_id", name="unique_provider_identity"),
        Index("idx_auth_identities_provider_lookup", "provider", "provider_user_id"),
    )

    id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True), primary_key=True, default=uuid4
    )
    student_id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True), nullable=False, index=True
    )
    provider: Mapped[str] = mapped_column(String(50), nullable=False)
    provider_user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    password_hash: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=text("NOW()"), nullable=False
    )
    last_login_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=text("NOW()"), nullable=False
    )


class Subject(Base):
    """Course scoped by branch/year/semester; is_common subjects apply to every branch."""

    __tablename__ = "subjects"
    __table_args__ = (
        UniqueConstraint("name", "branch", "academic_year", "semester", name="unique_subject_scope"),
        Index("idx_subjects_scope", "academic_year", "semester", "branch"),
    )

    id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True), primary_key=True, default=uuid4
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    branch: Mapped[str] = mapped_column(String(50), nullable=False)
    academic_year: Mapped[int] = mapped_column(Integer, nullable=False)
    semester: Mapped[int] = mapped_column(Integer, nullable=False)
    is_common: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=text("NOW()"), nullable=False
    )


class Note(Base):
    """
    Uploaded study document (PDF) tied to a subject.

    file_path is the storage key; file_url is the public URL handed to clients.
    """

    __tablename__ = "notes"
    __table_args__ = (
        Index("idx_notes_subject_created_at", "subject_id", "created_at"),
        CheckConstraint(
            "approval_status IN ('pending', 'approved', 'rejected')",
            name="valid_approval_status",
        ),
        CheckConstraint(
            "rating IS NULL OR (rating >= 0 AND rating <= 5)",
            name="valid_rating",
        ),
    )

    id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True), primary_key=True, default=uuid4
    )
    subject_id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True), ForeignKey("subjects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    student_id: Mapped[Optional[UUID]] = mapped_column(
        PGUUID(as_uuid=True), ForeignKey("students.id", ondelete="SET NULL"), nullable=True, index=True
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    file_url: Mapped[str] = mapped_column(Text, nullable=False)
    file_path: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    unit_number: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    approval_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ApprovalStatus.PENDING.value, server_default=text("'pending'")
    )
    views: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    downloads: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    rating: Mapped[Optional[float]] = mapped_column(Numeric(3, 2), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=text("NOW()"), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=text("NOW()"), nullable=False
    )


class Bookmark(Base):
    """
    A student's saved subject or note.

    Historical rows point at their target through either note_id or
    subject_id; both columns are kept and the access layer probes both.
    """

    __tablename__ = "bookmarks"
    __table_args__ = (
        UniqueConstraint("user_id", "note_id", name="unique_bookmark_note"),
        UniqueConstraint("user_id", "subject_id", name="unique_bookmark_subject"),
        Index("bookmarks_user_id_idx", "user_id"),
        Index("bookmarks_note_id_idx", "note_id"),
        Index("bookmarks_subject_id_idx", "subject_id"),
    )

    id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True), primary_key=True, default=uuid4
    )
    user_id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True), ForeignKey("students.id", ondelete="CASCADE"), nullable=False
    )
    note_id: Mapped[Optional[UUID]] = mapped_column(
        PGUUID(as_uuid=True), ForeignKey("notes.id", ondelete="CASCADE"), nullable=True
    )
    subject_id: Mapped[Optional[UUID]] = mapped_column(
        PGUUID(as_uuid=True), ForeignKey("subjects.id", ondelete="CASCADE"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=text("NOW()"), nullable=False
    )


class History(Base):
    """One row per note view."""

    __tablename__ = "history"
    __table_args__ = (
        Index("idx_history_user_viewed_at", "user_id", "viewed_at"),
    )

    id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True), primary_key=True, default=uuid4
    )
    user_id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True), ForeignKey("students.id", ondelete="CASCADE"), nullable=False
    )
    note_id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True), ForeignKey("notes.id", ondelete="CASCADE"), nullable=False, index=True
    )
    viewed_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=text("NOW()"), nullable=False
    )
