"""Initial schema with all tables.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19

This migration creates the complete StudyHub database schema:
- Extensions: uuid-ossp, citext
- Tables: students, auth_identities, subjects, notes, bookmarks, history
- Functions: increment_note_views, increment_note_downloads
- Triggers: updated_at auto-update on notes
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ==========================================================================
    # EXTENSIONS
    # ==========================================================================
    op.execute('CREATE EXTENSION IF NOT EXISTS "uuid-ossp"')
    op.execute('CREATE EXTENSION IF NOT EXISTS "citext"')

    # ==========================================================================
    # STUDENTS TABLE
    # ==========================================================================
    op.create_table(
        "students",
        sa.Column("id", postgresql.UUID(as_uuid=True), server_default=sa.text("uuid_generate_v4()"), nullable=False),
        sa.Column("full_name", sa.String(255), nullable=False),
        sa.Column("email", postgresql.CITEXT(), nullable=True),
        sa.Column("academic_year", sa.Integer(), nullable=True),
        sa.Column("semester", sa.Integer(), nullable=True),
        sa.Column("branch", sa.String(50), nullable=True),
        sa.Column("is_admin", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("created_at", postgresql.TIMESTAMP(timezone=True), server_default=sa.text("NOW()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
        sa.CheckConstraint(
            "academic_year IS NULL OR (academic_year >= 1 AND academic_year <= 6)",
            name="valid_academic_year",
        ),
        sa.CheckConstraint("semester IS NULL OR (semester >= 1 AND semester <= 2)", name="valid_semester"),
    )
    op.create_index("ix_students_email", "students", ["email"])

    # ==========================================================================
    # AUTH_IDENTITIES TABLE
    # ==========================================================================
    op.create_table(
        "auth_identities",
        sa.Column("id", postgresql.UUID(as_uuid=True), server_default=sa.text("uuid_generate_v4()"), nullable=False),
        sa.Column("student_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("provider", sa.String(50), nullable=False),
        sa.Column("provider_user_id", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("password_hash", sa.String(255), nullable=True),
        sa.Column("created_at", postgresql.TIMESTAMP(timezone=True), server_default=sa.text("NOW()"), nullable=False),
        sa.Column("last_login_at", postgresql.TIMESTAMP(timezone=True), server_default=sa.text("NOW()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("provider", "provider_user_id", name="unique_provider_identity"),
    )
    op.create_index("ix_auth_identities_student_id", "auth_identities", ["student_id"])
    op.create_index("idx_auth_identities_provider_lookup", "auth_identities", ["provider", "provider_user_id"])

    # ==========================================================================
    # SUBJECTS TABLE
    # ==========================================================================
    op.create_table(
        "subjects",
        sa.Column("id", postgresql.UUID(as_uuid=True), server_default=sa.text("uuid_generate_v4()"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("branch", sa.String(50), nullable=False),
        sa.Column("academic_year", sa.Integer(), nullable=False),
        sa.Column("semester", sa.Integer(), nullable=False),
        sa.Column("is_common", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("created_at", postgresql.TIMESTAMP(timezone=True), server_default=sa.text("NOW()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name", "branch", "academic_year", "semester", name="unique_subject_scope"),
    )
    op.create_index("idx_subjects_scope", "subjects", ["academic_year", "semester", "branch"])

    # ==========================================================================
    # NOTES TABLE
    # ==========================================================================
    op.create_table(
        "notes",
        sa.Column("id", postgresql.UUID(as_uuid=True), server_default=sa.text("uuid_generate_v4()"), nullable=False),
        sa.Column("subject_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("student_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("file_url", sa.Text(), nullable=False),
        sa.Column("file_path", sa.String(1024), nullable=True),
        sa.Column("unit_number", sa.Integer(), nullable=True),
        sa.Column("approval_status", sa.String(20), server_default=sa.text("'pending'"), nullable=False),
        sa.Column("views", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("downloads", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("rating", sa.Numeric(3, 2), nullable=True),
        sa.Column("created_at", postgresql.TIMESTAMP(timezone=True), server_default=sa.text("NOW()"), nullable=False),
        sa.Column("updated_at", postgresql.TIMESTAMP(timezone=True), server_default=sa.text("NOW()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["subject_id"], ["subjects.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["student_id"], ["students.id"], ondelete="SET NULL"),
        sa.CheckConstraint(
            "approval_status IN ('pending', 'approved', 'rejected')",
            name="valid_approval_status",
        ),
        sa.CheckConstraint("rating IS NULL OR (rating >= 0 AND rating <= 5)", name="valid_rating"),
    )
    op.create_index("ix_notes_subject_id", "notes", ["subject_id"])
    op.create_index("ix_notes_student_id", "notes", ["student_id"])
    op.create_index("idx_notes_subject_created_at", "notes", ["subject_id", "created_at"])

    # ==========================================================================
    # BOOKMARKS TABLE
    # ==========================================================================
    op.create_table(
        "bookmarks",
        sa.Column("id", postgresql.UUID(as_uuid=True), server_default=sa.text("uuid_generate_v4()"), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("note_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("subject_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("created_at", postgresql.TIMESTAMP(timezone=True), server_default=sa.text("NOW()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["students.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["note_id"], ["notes.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["subject_id"], ["subjects.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("user_id", "note_id", name="unique_bookmark_note"),
        sa.UniqueConstraint("user_id", "subject_id", name="unique_bookmark_subject"),
    )
    op.create_index("bookmarks_user_id_idx", "bookmarks", ["user_id"])
    op.create_index("bookmarks_note_id_idx", "bookmarks", ["note_id"])
    op.create_index("bookmarks_subject_id_idx", "bookmarks", ["subject_id"])

    # ==========================================================================
    # HISTORY TABLE
    # ==========================================================================
    op.create_table(
        "history",
        sa.Column("id", postgresql.UUID(as_uuid=True), server_default=sa.text("uuid_generate_v4()"), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("note_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("viewed_at", postgresql.TIMESTAMP(timezone=True), server_default=sa.text("NOW()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["students.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["note_id"], ["notes.id"], ondelete="CASCADE"),
    )
    op.create_index("idx_history_user_viewed_at", "history", ["user_id", sa.text("viewed_at DESC")])
    op.create_index("ix_history_note_id", "history", ["note_id"])

    # ==========================================================================
    # COUNTER FUNCTIONS
    # ==========================================================================
    # Callable directly from SQL clients; the API bumps the same columns itself
    for counter in ["views", "downloads"]:
        op.execute(f"""
            CREATE OR REPLACE FUNCTION increment_note_{counter}(note_id UUID)
            RETURNS VOID AS $$
            BEGIN
                UPDATE notes SET {counter} = COALESCE({counter}, 0) + 1 WHERE id = note_id;
            END;
            $$ LANGUAGE plpgsql;
        """)

    # ==========================================================================
    # UPDATED_AT TRIGGER FUNCTION
    # ==========================================================================
    op.execute("""
        CREATE OR REPLACE FUNCTION update_updated_at_column()
        RETURNS TRIGGER AS $$
        BEGIN
            NEW.updated_at = NOW();
            RETURN NEW;
        END;
        $$ LANGUAGE plpgsql;
    """)
    op.execute("""
        CREATE TRIGGER update_notes_updated_at
            BEFORE UPDATE ON notes
            FOR EACH ROW EXECUTE FUNCTION update_updated_at_column();
    """)


def downgrade() -> None:
    op.execute("DROP TRIGGER IF EXISTS update_notes_updated_at ON notes")
    op.execute("DROP FUNCTION IF EXISTS update_updated_at_column()")
    op.execute("DROP FUNCTION IF EXISTS increment_note_downloads(UUID)")
    op.execute("DROP FUNCTION IF EXISTS increment_note_views(UUID)")

    # Drop tables in reverse dependency order
    op.drop_table("history")
    op.drop_table("bookmarks")
    op.drop_table("notes")
    op.drop_table("subjects")
    op.drop_table("auth_identities")
    op.drop_table("students")
