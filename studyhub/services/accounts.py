"""
Sign-up / sign-in against the data service.

Unlike StudyData, account operations do not degrade to defaults: a sign-in
that cannot reach the store must fail, so BackendError propagates to the
route, which answers 503.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any
from uuid import UUID, uuid4

from passlib.context import CryptContext

from studyhub.data.errors import ConstraintError
from studyhub.data.gateway import DataBackend, Query
from studyhub.db.models import AuthProvider
from studyhub.schemas.students import Student

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


class AccountError(Exception):
    """Sign-up or sign-in was refused."""


class DuplicateAccountError(AccountError):
    pass


class InvalidCredentialsError(AccountError):
    pass


@dataclass(frozen=True)
class SignInResult:
    student: Student
    created: bool = False

    @property
    def needs_onboarding(self) -> bool:
        return self.student.needs_onboarding


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, password_hash: str) -> bool:
    return pwd_context.verify(plain_password, password_hash)


def is_admin(student: Student | None, admin_email: str | None = None) -> bool:
    """Admin by flag, or by matching the configured admin email."""
    if student is None:
        return False
    if student.is_admin:
        return True
    return bool(admin_email and student.email and student.email.lower() == admin_email.lower())


class AccountService:
    def __init__(self, backend: DataBackend):
        self.backend = backend

    async def _first(self, query: Query) -> dict[str, Any] | None:
        rows = await self.backend.select(query)
        return rows[0] if rows else None

    async def _identity(self, provider: AuthProvider, provider_user_id: str) -> dict[str, Any] | None:
        return await self._first(
            Query(
                table="auth_identities",
                filters={"provider": provider.value, "provider_user_id": provider_user_id},
                limit=1,
            )
        )

    async def _student(self, student_id: UUID) -> Student | None:
        row = await self._first(Query(table="students", filters={"id": student_id}, limit=1))
        return Student.model_validate(row) if row else None

    async def _student_by_email(self, email: str) -> Student | None:
        row = await self._first(Query(table="students", filters={"email": email}, limit=1))
        return Student.model_validate(row) if row else None

    async def _create_student(self, email: str | None, full_name: str, student_id: UUID | None = None) -> Student:
        row = await self.backend.insert(
            "students",
            {
                "id": student_id or uuid4(),
                "full_name": full_name,
                "email": email,
                "is_admin": False,
                "created_at": datetime.now(timezone.utc),
            },
        )
        return Student.model_validate(row)

    async def _link_identity(
        self,
        student_id: UUID,
        provider: AuthProvider,
        provider_user_id: str,
        email: str | None,
        password_hash: str | None = None,
    ) -> None:
        now = datetime.now(timezone.utc)
        await self.backend.insert(
            "auth_identities",
            {
                "student_id": student_id,
                "provider": provider.value,
                "provider_user_id": provider_user_id,
                "email": email,
                "password_hash": password_hash,
                "created_at": now,
                "last_login_at": now,
            },
        )

    async def _touch(self, identity: dict[str, Any], email: str | None = None) -> None:
        changes: dict[str, Any] = {"last_login_at": datetime.now(timezone.utc)}
        if email:
            changes["email"] = email
        await self.backend.update("auth_identities", {"id": identity["id"]}, changes)

    async def sign_up(self, email: str, password: str, full_name: str | None = None) -> SignInResult:
        email = email.lower()
        if await self._identity(AuthProvider.EMAIL, email) is not None:
            raise DuplicateAccountError("An account with this email already exists")

        # The email is unverified here, so it must not claim an existing profile
        if await self._student_by_email(email) is not None:
            raise DuplicateAccountError("An account with this email already exists")
        try:
            student = await self._create_student(email, full_name or email.split("@")[0])
        except ConstraintError as e:
            raise DuplicateAccountError("An account with this email already exists") from e

        try:
            await self._link_identity(student.id, AuthProvider.EMAIL, email, email, hash_password(password))
        except ConstraintError as e:
            raise DuplicateAccountError("An account with this email already exists") from e

        logger.info("Signed up student %s", student.id)
        return SignInResult(student=student, created=True)

    async def sign_in(self, email: str, password: str) -> SignInResult:
        email = email.lower()
        identity = await self._identity(AuthProvider.EMAIL, email)
        if identity is None or not identity.get("password_hash"):
            raise InvalidCredentialsError("Invalid email or password")
        if not verify_password(password, identity["password_hash"]):
            raise InvalidCredentialsError("Invalid email or password")

        student = await self._student(identity["student_id"])
        if student is None:
            # Profile was reset; recreate a bare one under the same id
            student = await self._create_student(email, email.split("@")[0], identity["student_id"])

        await self._touch(identity)
        return SignInResult(student=student)

    async def sign_in_google(
        self,
        provider_user_id: str,
        email: str | None,
        name: str | None,
    ) -> SignInResult:
        """
        Find or create the student behind a verified Google identity.

        1. Known identity -> update last login, return its student
        2. Unknown identity, verified email matches a student -> link
        3. Otherwise create a student and link
        """
        email = email.lower() if email else None
        display_name = name or (email.split("@")[0] if email else "New User")
        identity = await self._identity(AuthProvider.GOOGLE, provider_user_id)

        if identity is not None:
            await self._touch(identity, email)
            student = await self._student(identity["student_id"])
            if student is not None:
                return SignInResult(student=student)
            # Profile was reset; recreate a bare one under the same id
            student = await self._create_student(email, display_name, identity["student_id"])
            return SignInResult(student=student, created=True)

        student = await self._student_by_email(email) if email else None
        created = student is None
        if student is None:
            student = await self._create_student(email, display_name)
        await self._link_identity(student.id, AuthProvider.GOOGLE, provider_user_id, email)

        logger.info("Google sign-in for student %s (created=%s)", student.id, created)
        return SignInResult(student=student, created=created)
