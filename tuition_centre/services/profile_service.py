"""Teacher and student onboarding.

Onboarding writes the login account and its profile in one unit of work.
A student also gets a parent account, new or reused, linked as the
primary contact.  Generated temporary passwords are returned once; only
their hashes are stored.

Codes are numbered from the count of existing codes with the same prefix.
Two concurrent onboardings can pick the same number; the unique constraint
rejects the second and the caller is asked to retry.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, date, datetime
from uuid import UUID, uuid4

from tuition_centre.core.errors import (
    ConflictError,
    DuplicateKeyError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from tuition_centre.db.tables import UQ_USER_ORG_EMAIL
from tuition_centre.db.unit_of_work import UnitOfWork, UnitOfWorkFactory
from tuition_centre.models.branch import Branch
from tuition_centre.models.principal import Principal
from tuition_centre.models.profile import (
    ContactMethod,
    Gender,
    Parent,
    ParentStudent,
    Student,
    Teacher,
)
from tuition_centre.models.user import Role, User
from tuition_centre.services.password_service import (
    PasswordService,
    generate_temporary_password,
)
from tuition_centre.services.user_service import (
    BRANCH_NOT_FOUND,
    DUPLICATE_EMAIL,
    FOREIGN_BRANCH,
)

logger = logging.getLogger(__name__)

PARENT_EMAIL_TAKEN = "Parent email belongs to an account that is not a parent"
CODE_TAKEN = "Could not allocate a unique code, please retry"
PARENT_CHANGED = "Parent account changed during onboarding, please retry"

# Login domain for students enrolled without an email address of their own.
STUDENT_EMAIL_DOMAIN = "student.temp"


@dataclass(frozen=True, slots=True)
class TeacherSignup:
    email: str
    name: str
    branch_id: UUID
    phone: str | None = None
    address: str | None = None
    employee_id: str | None = None
    employment_start_date: date | None = None
    date_of_birth: date | None = None
    gender: Gender | None = None
    emergency_contact_name: str | None = None
    emergency_contact_phone: str | None = None


@dataclass(frozen=True, slots=True)
class StudentSignup:
    name: str
    branch_id: UUID
    date_of_birth: date
    gender: Gender
    grade: str
    school_name: str
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    medical_info: str | None = None
    special_needs: str | None = None
    previous_tuition_centre: str | None = None
    referral_source: str | None = None


@dataclass(frozen=True, slots=True)
class ParentSignup:
    name: str
    email: str
    relationship: str
    phone: str | None = None
    address: str | None = None
    occupation: str | None = None
    office_phone: str | None = None
    preferred_contact_method: ContactMethod | None = None


@dataclass(frozen=True, slots=True)
class TeacherAccount:
    user: User
    teacher: Teacher
    temporary_password: str


@dataclass(frozen=True, slots=True)
class StudentAccount:
    user: User
    student: Student
    temporary_password: str
    parent_user: User
    # None when an existing parent account was reused.
    parent_temporary_password: str | None

    @property
    def is_new_parent(self) -> bool:
        return self.parent_temporary_password is not None


def _conflict(exc: DuplicateKeyError) -> ConflictError:
    if exc.constraint == UQ_USER_ORG_EMAIL:
        return ConflictError(DUPLICATE_EMAIL)
    return ConflictError(CODE_TAKEN)


class ProfileService:
    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        passwords: PasswordService,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._uow_factory = uow_factory
        self._passwords = passwords
        self._clock = clock or (lambda: datetime.now(UTC))

    async def create_teacher(
        self, principal: Principal, signup: TeacherSignup
    ) -> TeacherAccount:
        org_id = principal.organization_id
        if not principal.may_use_branch(signup.branch_id):
            raise ForbiddenError(FOREIGN_BRANCH)
        async with self._uow_factory() as uow:
            await self._require_branch(uow, principal, signup.branch_id)
            if await uow.users.get_by_email(org_id, signup.email) is not None:
                raise ConflictError(DUPLICATE_EMAIL)

        temporary = generate_temporary_password()
        password_hash = await self._passwords.hash(temporary)
        now = self._clock()
        prefix = f"TCH-{now.year}-"
        try:
            async with self._uow_factory() as uow:
                number = await uow.profiles.count_teacher_codes(org_id, prefix) + 1
                user = User.new(
                    organization_id=org_id,
                    email=signup.email,
                    password_hash=password_hash,
                    name=signup.name,
                    role=Role.TEACHER,
                    now=now,
                    branch_id=signup.branch_id,
                    phone=signup.phone,
                    address=signup.address,
                )
                teacher = Teacher(
                    id=uuid4(),
                    organization_id=org_id,
                    user_id=user.id,
                    teacher_code=f"{prefix}{number:04d}",
                    created_at=now,
                    employee_id=signup.employee_id,
                    employment_start_date=signup.employment_start_date,
                    date_of_birth=signup.date_of_birth,
                    gender=signup.gender,
                    emergency_contact_name=signup.emergency_contact_name,
                    emergency_contact_phone=signup.emergency_contact_phone,
                )
                await uow.users.add(user)
                await uow.profiles.add_teacher(teacher)
                await uow.commit()
        except DuplicateKeyError as exc:
            raise _conflict(exc) from None

        logger.info("Onboarded teacher %s (%s)", teacher.id, teacher.teacher_code)
        return TeacherAccount(user=user, teacher=teacher, temporary_password=temporary)

    async def create_student(
        self, principal: Principal, signup: StudentSignup, parent: ParentSignup
    ) -> StudentAccount:
        """Create a student and link them to a parent account.

        An existing PARENT account with the parent email is reused (and given
        a parent profile if it has none); any other account with that email
        is a conflict.
        """
        org_id = principal.organization_id
        if not principal.may_use_branch(signup.branch_id):
            raise ForbiddenError(FOREIGN_BRANCH)
        if signup.email is not None and signup.email == parent.email:
            raise ValidationError("Student and parent emails must be different")

        async with self._uow_factory() as uow:
            branch = await self._require_branch(uow, principal, signup.branch_id)
            if signup.email is not None:
                if await uow.users.get_by_email(org_id, signup.email) is not None:
                    raise ConflictError(DUPLICATE_EMAIL)
            existing_parent = await uow.users.get_by_email(org_id, parent.email)
            if existing_parent is not None and existing_parent.role != Role.PARENT:
                raise ConflictError(PARENT_EMAIL_TAKEN)

        temporary = generate_temporary_password()
        password_hash = await self._passwords.hash(temporary)
        parent_temporary: str | None = None
        parent_hash: str | None = None
        if existing_parent is None:
            parent_temporary = generate_temporary_password()
            parent_hash = await self._passwords.hash(parent_temporary)

        now = self._clock()
        prefix = f"{now.year}-{branch.code}-"
        try:
            async with self._uow_factory() as uow:
                parent_user = await uow.users.get_by_email(org_id, parent.email)
                if parent_user is None:
                    if parent_hash is None:
                        raise ConflictError(PARENT_CHANGED)
                    parent_user = User.new(
                        organization_id=org_id,
                        email=parent.email,
                        password_hash=parent_hash,
                        name=parent.name,
                        role=Role.PARENT,
                        now=now,
                        phone=parent.phone,
                        address=parent.address,
                    )
                    await uow.users.add(parent_user)
                elif parent_user.role != Role.PARENT:
                    raise ConflictError(PARENT_EMAIL_TAKEN)
                else:
                    parent_temporary = None

                parent_profile = await uow.profiles.get_parent_by_user(
                    org_id, parent_user.id
                )
                if parent_profile is None:
                    parent_profile = Parent(
                        id=uuid4(),
                        organization_id=org_id,
                        user_id=parent_user.id,
                        created_at=now,
                        occupation=parent.occupation,
                        office_phone=parent.office_phone,
                        preferred_contact_method=parent.preferred_contact_method,
                    )
                    await uow.profiles.add_parent(parent_profile)

                number = await uow.profiles.count_student_codes(org_id, prefix) + 1
                code = f"{prefix}{number:04d}"
                user = User.new(
                    organization_id=org_id,
                    email=signup.email or f"{code.lower()}@{STUDENT_EMAIL_DOMAIN}",
                    password_hash=password_hash,
                    name=signup.name,
                    role=Role.STUDENT,
                    now=now,
                    branch_id=signup.branch_id,
                    phone=signup.phone,
                    address=signup.address,
                )
                student = Student(
                    id=uuid4(),
                    organization_id=org_id,
                    user_id=user.id,
                    student_code=code,
                    date_of_birth=signup.date_of_birth,
                    gender=signup.gender,
                    grade=signup.grade,
                    school_name=signup.school_name,
                    created_at=now,
                    medical_info=signup.medical_info,
                    special_needs=signup.special_needs,
                    previous_tuition_centre=signup.previous_tuition_centre,
                    referral_source=signup.referral_source,
                )
                await uow.users.add(user)
                await uow.profiles.add_student(student)
                await uow.profiles.add_parent_link(
                    ParentStudent(
                        parent_id=parent_profile.id,
                        student_id=student.id,
                        relationship=parent.relationship,
                        is_primary=True,
                        created_at=now,
                    )
                )
                await uow.commit()
        except DuplicateKeyError as exc:
            raise _conflict(exc) from None

        logger.info(
            "Onboarded student %s (%s) with %s parent %s",
            student.id,
            student.student_code,
            "new" if parent_temporary is not None else "existing",
            parent_user.id,
        )
        return StudentAccount(
            user=user,
            student=student,
            temporary_password=temporary,
            parent_user=parent_user,
            parent_temporary_password=parent_temporary,
        )

    async def list_teachers(self, principal: Principal) -> list[tuple[Teacher, User]]:
        async with self._uow_factory() as uow:
            teachers = await uow.profiles.list_teachers(principal.organization_id)
            users = await self._visible_users(uow, principal, Role.TEACHER)
        return [(t, users[t.user_id]) for t in teachers if t.user_id in users]

    async def list_students(self, principal: Principal) -> list[tuple[Student, User]]:
        async with self._uow_factory() as uow:
            students = await uow.profiles.list_students(principal.organization_id)
            users = await self._visible_users(uow, principal, Role.STUDENT)
        return [(s, users[s.user_id]) for s in students if s.user_id in users]

    @staticmethod
    async def _visible_users(
        uow: UnitOfWork, principal: Principal, role: Role
    ) -> dict[UUID, User]:
        branch_id = None
        if principal.role == Role.BRANCH_ADMIN:
            if principal.branch_id is None:
                return {}
            branch_id = principal.branch_id
        users = await uow.users.list(
            principal.organization_id, role=role, branch_id=branch_id
        )
        return {u.id: u for u in users}

    @staticmethod
    async def _require_branch(
        uow: UnitOfWork, principal: Principal, branch_id: UUID
    ) -> Branch:
        branch = await uow.branches.get_by_id(principal.organization_id, branch_id)
        if branch is None:
            raise NotFoundError(BRANCH_NOT_FOUND)
        return branch
