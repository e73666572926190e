"""SQLAlchemy table definitions.

These map to the frozen dataclass domain models in tuition_centre/models/.
Repos convert between rows and dataclasses.  Constraint names are fixed
because the Postgres repos use them to tell which uniqueness rule a
failed insert broke.
"""

from __future__ import annotations

import datetime
import uuid

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    PrimaryKeyConstraint,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import ARRAY, JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from tuition_centre.db.engine import Base

UQ_ORG_EMAIL = "uq_organizations_email"
UQ_ORG_SLUG = "uq_organizations_slug"
UQ_USER_ORG_EMAIL = "uq_users_organization_email"
UQ_BRANCH_ORG_CODE = "uq_branches_organization_code"
UQ_COURSE_ORG_CODE = "uq_courses_organization_code"
PK_COURSE_BRANCH = "pk_course_branches"
UQ_TEACHER_USER = "uq_teachers_user_id"
UQ_TEACHER_ORG_CODE = "uq_teachers_organization_code"
UQ_STUDENT_USER = "uq_students_user_id"
UQ_STUDENT_ORG_CODE = "uq_students_organization_code"
UQ_PARENT_USER = "uq_parents_user_id"
PK_PARENT_STUDENT = "pk_parent_students"
UQ_CLASS_ORG_CODE = "uq_classes_organization_code"
UQ_ENROLLMENT_CLASS_STUDENT = "uq_class_enrollments_class_student"
UQ_WAITLIST_CLASS_STUDENT = "uq_class_waitlist_class_student"

_Money = Numeric(10, 2, asdecimal=False)


class OrganizationRow(Base):
    __tablename__ = "organizations"
    __table_args__ = (
        UniqueConstraint("email", name=UQ_ORG_EMAIL),
        UniqueConstraint("slug", name=UQ_ORG_SLUG),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    slug: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(64), nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    country: Mapped[str | None] = mapped_column(String(128), nullable=True)
    plan: Mapped[str] = mapped_column(
        String(32), nullable=False, default="FREE_TRIAL"
    )  # FREE_TRIAL|STARTER|PROFESSIONAL|ENTERPRISE
    plan_status: Mapped[str] = mapped_column(
        String(32), nullable=False, default="TRIAL"
    )  # TRIAL|ACTIVE|PAST_DUE|SUSPENDED|CANCELLED|EXPIRED
    trial_ends_at: Mapped[datetime.datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    updated_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )


class BranchRow(Base):
    __tablename__ = "branches"
    __table_args__ = (
        UniqueConstraint("organization_id", "code", name=UQ_BRANCH_ORG_CODE),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    organization_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    code: Mapped[str] = mapped_column(String(64), nullable=False)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    phone: Mapped[str | None] = mapped_column(String(64), nullable=True)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    updated_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )


class UserRow(Base):
    __tablename__ = "users"
    __table_args__ = (
        UniqueConstraint("email", "organization_id", name=UQ_USER_ORG_EMAIL),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    organization_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    branch_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("branches.id", ondelete="SET NULL"),
        nullable=True,
    )
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    password_hash: Mapped[str] = mapped_column(Text, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(
        String(32), nullable=False
    )  # SUPER_ADMIN|BRANCH_ADMIN|TEACHER|STUDENT|PARENT
    phone: Mapped[str | None] = mapped_column(String(64), nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    updated_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )


class CourseRow(Base):
    __tablename__ = "courses"
    __table_args__ = (
        UniqueConstraint("organization_id", "code", name=UQ_COURSE_ORG_CODE),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    organization_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    code: Mapped[str] = mapped_column(String(64), nullable=False)
    category: Mapped[str] = mapped_column(String(32), nullable=False)
    difficulty_level: Mapped[str] = mapped_column(String(32), nullable=False)
    grade_levels: Mapped[list[str]] = mapped_column(
        ARRAY(String), nullable=False, default=[]
    )
    session_duration: Mapped[str] = mapped_column(String(32), nullable=False)
    max_class_size: Mapped[int] = mapped_column(Integer, nullable=False)
    min_class_size: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    prerequisites: Mapped[str | None] = mapped_column(Text, nullable=True)
    total_weeks: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_ongoing: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    base_fee_per_session: Mapped[float | None] = mapped_column(_Money, nullable=True)
    base_fee_per_month: Mapped[float | None] = mapped_column(_Money, nullable=True)
    base_fee_per_term: Mapped[float | None] = mapped_column(_Money, nullable=True)
    material_fee: Mapped[float | None] = mapped_column(_Money, nullable=True)
    registration_fee: Mapped[float | None] = mapped_column(_Money, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    enrollment_open: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True
    )
    is_template: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    updated_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )


class CourseBranchRow(Base):
    __tablename__ = "course_branches"
    __table_args__ = (
        PrimaryKeyConstraint("course_id", "branch_id", name=PK_COURSE_BRANCH),
    )

    course_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("courses.id", ondelete="CASCADE"),
        nullable=False,
    )
    branch_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("branches.id", ondelete="CASCADE"),
        nullable=False,
    )
    is_offered: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    custom_fee_per_session: Mapped[float | None] = mapped_column(_Money, nullable=True)
    custom_fee_per_month: Mapped[float | None] = mapped_column(_Money, nullable=True)
    custom_fee_per_term: Mapped[float | None] = mapped_column(_Money, nullable=True)
    custom_max_class_size: Mapped[int | None] = mapped_column(Integer, nullable=True)
    custom_min_class_size: Mapped[int | None] = mapped_column(Integer, nullable=True)
    branch_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    updated_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )


class TeacherRow(Base):
    __tablename__ = "teachers"
    __table_args__ = (
        UniqueConstraint("user_id", name=UQ_TEACHER_USER),
        UniqueConstraint("organization_id", "teacher_code", name=UQ_TEACHER_ORG_CODE),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    organization_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    teacher_code: Mapped[str] = mapped_column(String(32), nullable=False)
    employee_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    employment_start_date: Mapped[datetime.date | None] = mapped_column(
        Date, nullable=True
    )
    date_of_birth: Mapped[datetime.date | None] = mapped_column(Date, nullable=True)
    gender: Mapped[str | None] = mapped_column(String(16), nullable=True)
    emergency_contact_name: Mapped[str | None] = mapped_column(
        String(255), nullable=True
    )
    emergency_contact_phone: Mapped[str | None] = mapped_column(
        String(64), nullable=True
    )
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )


class StudentRow(Base):
    __tablename__ = "students"
    __table_args__ = (
        UniqueConstraint("user_id", name=UQ_STUDENT_USER),
        UniqueConstraint("organization_id", "student_code", name=UQ_STUDENT_ORG_CODE),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    organization_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    student_code: Mapped[str] = mapped_column(String(100), nullable=False)
    date_of_birth: Mapped[datetime.date] = mapped_column(Date, nullable=False)
    gender: Mapped[str] = mapped_column(String(16), nullable=False)
    grade: Mapped[str] = mapped_column(String(64), nullable=False)
    school_name: Mapped[str] = mapped_column(String(255), nullable=False)
    medical_info: Mapped[str | None] = mapped_column(Text, nullable=True)
    special_needs: Mapped[str | None] = mapped_column(Text, nullable=True)
    previous_tuition_centre: Mapped[str | None] = mapped_column(
        String(255), nullable=True
    )
    referral_source: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )


class ParentRow(Base):
    __tablename__ = "parents"
    __table_args__ = (UniqueConstraint("user_id", name=UQ_PARENT_USER),)

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    organization_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    occupation: Mapped[str | None] = mapped_column(String(255), nullable=True)
    office_phone: Mapped[str | None] = mapped_column(String(64), nullable=True)
    preferred_contact_method: Mapped[str | None] = mapped_column(
        String(16), nullable=True
    )  # PHONE|EMAIL|WHATSAPP
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )


class ParentStudentRow(Base):
    __tablename__ = "parent_students"
    __table_args__ = (
        PrimaryKeyConstraint("parent_id", "student_id", name=PK_PARENT_STUDENT),
    )

    parent_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("parents.id", ondelete="CASCADE"),
        nullable=False,
    )
    student_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("students.id", ondelete="CASCADE"),
        nullable=False,
    )
    relationship: Mapped[str] = mapped_column(String(64), nullable=False)
    is_primary: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )


class ClassRow(Base):
    __tablename__ = "classes"
    __table_args__ = (
        UniqueConstraint("organization_id", "class_code", name=UQ_CLASS_ORG_CODE),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    organization_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    branch_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("branches.id"),
        nullable=False,
        index=True,
    )
    course_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("courses.id"),
        nullable=False,
        index=True,
    )
    teacher_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("teachers.id"),
        nullable=False,
    )
    co_teacher_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("teachers.id", ondelete="SET NULL"),
        nullable=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    class_code: Mapped[str] = mapped_column(String(100), nullable=False)
    class_type: Mapped[str] = mapped_column(String(32), nullable=False)
    class_level: Mapped[str | None] = mapped_column(String(64), nullable=True)
    term_name: Mapped[str | None] = mapped_column(String(64), nullable=True)
    academic_year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    start_date: Mapped[datetime.date] = mapped_column(Date, nullable=False)
    end_date: Mapped[datetime.date] = mapped_column(Date, nullable=False)
    total_weeks: Mapped[int | None] = mapped_column(Integer, nullable=True)
    # [{"day": "MONDAY", "startTime": "16:00", "endTime": "17:30"}, ...]
    schedule: Mapped[list[dict]] = mapped_column(JSONB, nullable=False, default=list)
    schedule_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    max_capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    min_capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    fee_per_session: Mapped[float | None] = mapped_column(_Money, nullable=True)
    fee_per_month: Mapped[float | None] = mapped_column(_Money, nullable=True)
    fee_per_term: Mapped[float | None] = mapped_column(_Money, nullable=True)
    material_fee: Mapped[float | None] = mapped_column(_Money, nullable=True)
    allow_late_enrollment: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True
    )
    late_enrollment_cutoff_date: Mapped[datetime.date | None] = mapped_column(
        Date, nullable=True
    )
    allow_mid_term_withdrawal: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True
    )
    waitlist_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    auto_enroll_from_waitlist: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    status: Mapped[str] = mapped_column(
        String(32), nullable=False, default="DRAFT"
    )  # DRAFT|OPEN_FOR_ENROLLMENT|FULL|IN_PROGRESS|COMPLETED|CANCELLED|ON_HOLD
    current_enrollment: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    syllabus: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    updated_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )


class EnrollmentRow(Base):
    __tablename__ = "class_enrollments"
    __table_args__ = (
        UniqueConstraint("class_id", "student_id", name=UQ_ENROLLMENT_CLASS_STUDENT),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    class_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("classes.id", ondelete="CASCADE"),
        nullable=False,
    )
    student_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("students.id", ondelete="CASCADE"),
        nullable=False,
    )
    status: Mapped[str] = mapped_column(String(16), nullable=False)  # ACTIVE|WITHDRAWN
    agreed_fee_per_month: Mapped[float | None] = mapped_column(_Money, nullable=True)
    discount_applied: Mapped[float | None] = mapped_column(_Money, nullable=True)
    enrollment_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    enrolled_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    withdrawn_at: Mapped[datetime.datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    withdrawal_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    updated_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )


class WaitlistRow(Base):
    __tablename__ = "class_waitlist"
    __table_args__ = (
        UniqueConstraint("class_id", "student_id", name=UQ_WAITLIST_CLASS_STUDENT),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    class_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("classes.id", ondelete="CASCADE"),
        nullable=False,
    )
    student_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("students.id", ondelete="CASCADE"),
        nullable=False,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False)  # WAITING|ENROLLED
    is_priority: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    priority_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    enrolled_at: Mapped[datetime.datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    updated_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
