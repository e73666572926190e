"""create profiles and classes

Revision ID: 8c4e2a71d5f0
Revises: 3b1f0c2d9a47
Create Date: 2026-10-19 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "8c4e2a71d5f0"
down_revision: str | Sequence[str] | None = "3b1f0c2d9a47"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _created_at() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), nullable=False)


def _updated_at() -> sa.Column:
    return sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False)


def _money(name: str) -> sa.Column:
    return sa.Column(name, sa.Numeric(10, 2), nullable=True)


def _fk(name: str, target: str, ondelete: str | None = None, nullable: bool = False):
    return sa.Column(
        name,
        postgresql.UUID(as_uuid=True),
        sa.ForeignKey(target, ondelete=ondelete),
        nullable=nullable,
    )


def upgrade() -> None:
    op.create_table(
        "teachers",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        _fk("organization_id", "organizations.id", "CASCADE"),
        _fk("user_id", "users.id", "CASCADE"),
        sa.Column("teacher_code", sa.String(length=32), nullable=False),
        sa.Column("employee_id", sa.String(length=64), nullable=True),
        sa.Column("employment_start_date", sa.Date(), nullable=True),
        sa.Column("date_of_birth", sa.Date(), nullable=True),
        sa.Column("gender", sa.String(length=16), nullable=True),
        sa.Column("emergency_contact_name", sa.String(length=255), nullable=True),
        sa.Column("emergency_contact_phone", sa.String(length=64), nullable=True),
        _created_at(),
        sa.UniqueConstraint("user_id", name="uq_teachers_user_id"),
        sa.UniqueConstraint(
            "organization_id", "teacher_code", name="uq_teachers_organization_code"
        ),
    )
    op.create_index("ix_teachers_organization_id", "teachers", ["organization_id"])

    op.create_table(
        "students",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        _fk("organization_id", "organizations.id", "CASCADE"),
        _fk("user_id", "users.id", "CASCADE"),
        sa.Column("student_code", sa.String(length=100), nullable=False),
        sa.Column("date_of_birth", sa.Date(), nullable=False),
        sa.Column("gender", sa.String(length=16), nullable=False),
        sa.Column("grade", sa.String(length=64), nullable=False),
        sa.Column("school_name", sa.String(length=255), nullable=False),
        sa.Column("medical_info", sa.Text(), nullable=True),
        sa.Column("special_needs", sa.Text(), nullable=True),
        sa.Column("previous_tuition_centre", sa.String(length=255), nullable=True),
        sa.Column("referral_source", sa.String(length=255), nullable=True),
        _created_at(),
        sa.UniqueConstraint("user_id", name="uq_students_user_id"),
        sa.UniqueConstraint(
            "organization_id", "student_code", name="uq_students_organization_code"
        ),
    )
    op.create_index("ix_students_organization_id", "students", ["organization_id"])

    op.create_table(
        "parents",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        _fk("organization_id", "organizations.id", "CASCADE"),
        _fk("user_id", "users.id", "CASCADE"),
        sa.Column("occupation", sa.String(length=255), nullable=True),
        sa.Column("office_phone", sa.String(length=64), nullable=True),
        sa.Column("preferred_contact_method", sa.String(length=16), nullable=True),
        _created_at(),
        sa.UniqueConstraint("user_id", name="uq_parents_user_id"),
    )
    op.create_index("ix_parents_organization_id", "parents", ["organization_id"])

    op.create_table(
        "parent_students",
        _fk("parent_id", "parents.id", "CASCADE"),
        _fk("student_id", "students.id", "CASCADE"),
        sa.Column("relationship", sa.String(length=64), nullable=False),
        sa.Column("is_primary", sa.Boolean(), nullable=False, server_default=sa.false()),
        _created_at(),
        sa.PrimaryKeyConstraint("parent_id", "student_id", name="pk_parent_students"),
    )

    op.create_table(
        "classes",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        _fk("organization_id", "organizations.id", "CASCADE"),
        _fk("branch_id", "branches.id"),
        _fk("course_id", "courses.id"),
        _fk("teacher_id", "teachers.id"),
        _fk("co_teacher_id", "teachers.id", "SET NULL", nullable=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("class_code", sa.String(length=100), nullable=False),
        sa.Column("class_type", sa.String(length=32), nullable=False),
        sa.Column("class_level", sa.String(length=64), nullable=True),
        sa.Column("term_name", sa.String(length=64), nullable=True),
        sa.Column("academic_year", sa.Integer(), nullable=True),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("total_weeks", sa.Integer(), nullable=True),
        sa.Column(
            "schedule",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
        ),
        sa.Column("schedule_notes", sa.Text(), nullable=True),
        sa.Column("max_capacity", sa.Integer(), nullable=False),
        sa.Column("min_capacity", sa.Integer(), nullable=False),
        _money("fee_per_session"),
        _money("fee_per_month"),
        _money("fee_per_term"),
        _money("material_fee"),
        sa.Column(
            "allow_late_enrollment", sa.Boolean(), nullable=False, server_default=sa.true()
        ),
        sa.Column("late_enrollment_cutoff_date", sa.Date(), nullable=True),
        sa.Column(
            "allow_mid_term_withdrawal",
            sa.Boolean(),
            nullable=False,
            server_default=sa.true(),
        ),
        sa.Column(
            "waitlist_enabled", sa.Boolean(), nullable=False, server_default=sa.true()
        ),
        sa.Column(
            "auto_enroll_from_waitlist",
            sa.Boolean(),
            nullable=False,
            server_default=sa.false(),
        ),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="DRAFT"),
        sa.Column(
            "current_enrollment", sa.Integer(), nullable=False, server_default="0"
        ),
        sa.Column("syllabus", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _created_at(),
        _updated_at(),
        sa.UniqueConstraint(
            "organization_id", "class_code", name="uq_classes_organization_code"
        ),
    )
    op.create_index("ix_classes_organization_id", "classes", ["organization_id"])
    op.create_index("ix_classes_branch_id", "classes", ["branch_id"])
    op.create_index("ix_classes_course_id", "classes", ["course_id"])

    op.create_table(
        "class_enrollments",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        _fk("class_id", "classes.id", "CASCADE"),
        _fk("student_id", "students.id", "CASCADE"),
        sa.Column("status", sa.String(length=16), nullable=False),
        _money("agreed_fee_per_month"),
        _money("discount_applied"),
        sa.Column("enrollment_notes", sa.Text(), nullable=True),
        sa.Column("enrolled_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("withdrawn_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("withdrawal_reason", sa.Text(), nullable=True),
        _updated_at(),
        sa.UniqueConstraint(
            "class_id", "student_id", name="uq_class_enrollments_class_student"
        ),
    )

    op.create_table(
        "class_waitlist",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        _fk("class_id", "classes.id", "CASCADE"),
        _fk("student_id", "students.id", "CASCADE"),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("is_priority", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("priority_notes", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("enrolled_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        _updated_at(),
        sa.UniqueConstraint(
            "class_id", "student_id", name="uq_class_waitlist_class_student"
        ),
    )


def downgrade() -> None:
    op.drop_table("class_waitlist")
    op.drop_table("class_enrollments")
    op.drop_index("ix_classes_course_id", table_name="classes")
    op.drop_index("ix_classes_branch_id", table_name="classes")
    op.drop_index("ix_classes_organization_id", table_name="classes")
    op.drop_table("classes")
    op.drop_table("parent_students")
    op.drop_index("ix_parents_organization_id", table_name="parents")
    op.drop_table("parents")
    op.drop_index("ix_students_organization_id", table_name="students")
    op.drop_table("students")
    op.drop_index("ix_teachers_organization_id", table_name="teachers")
    op.drop_table("teachers")
