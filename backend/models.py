"""
Pydantic models for the discipline dashboard gateway.

Defines the attendance export request, the login payload and the
session user stored in the signed cookie.
"""

from __future__ import annotations

import re

from pydantic import AliasChoices, BaseModel, ConfigDict, EmailStr, Field, field_validator

# "JULI 2025", "Agustus 2024" — one word, a space, a four digit year
MONTH_LABEL_RE = re.compile(r"^\S+ \d{4}$")


class AttendanceRow(BaseModel):
    """One student's attendance tally for a month."""

    model_config = ConfigDict(populate_by_name=True)

    student_name: str = Field(validation_alias=AliasChoices("nama_siswa", "studentName", "student_name"))
    student_nis: str = Field(validation_alias=AliasChoices("nis_siswa", "studentNis", "student_nis"))
    present_count: int = Field(
        default=0, ge=0, validation_alias=AliasChoices("hadir", "presentCount", "present_count")
    )
    sick_count: int = Field(default=0, ge=0, validation_alias=AliasChoices("sakit", "sickCount", "sick_count"))
    permitted_absence_count: int = Field(
        default=0,
        ge=0,
        validation_alias=AliasChoices("izin", "permittedAbsenceCount", "permitted_absence_count"),
    )
    unexcused_absence_count: int = Field(
        default=0,
        ge=0,
        validation_alias=AliasChoices("alpha", "unexcusedAbsenceCount", "unexcused_absence_count"),
    )
    total_effective_days: int = Field(
        default=0,
        ge=0,
        validation_alias=AliasChoices("total_hari", "totalEffectiveDays", "total_effective_days"),
    )

    @field_validator("student_nis", mode="before")
    @classmethod
    def _nis_as_text(cls, value):
        # The backend sometimes sends NIS as a number
        if isinstance(value, int):
            return str(value)
        return value

    @field_validator(
        "present_count",
        "sick_count",
        "permitted_absence_count",
        "unexcused_absence_count",
        "total_effective_days",
        mode="before",
    )
    @classmethod
    def _missing_count_is_zero(cls, value):
        return 0 if value is None else value


class AttendanceExportRequest(BaseModel):
    """Request body for ``POST /api/attendances/export``."""

    model_config = ConfigDict(populate_by_name=True)

    rows: list[AttendanceRow] = Field(alias="data", min_length=1)
    month: str = Field(min_length=1)
    class_name: str = Field(alias="className", min_length=1)
    homeroom_teacher_name: str | None = Field(alias="waliKelas")
    principal_name: str | None = Field(default=None, alias="pimpinan")
    counselor_name: str | None = Field(default=None, alias="guruBk")

    @field_validator("month")
    @classmethod
    def _month_word_and_year(cls, value: str) -> str:
        value = value.strip()
        if not MONTH_LABEL_RE.match(value):
            raise ValueError("month must look like '<MONTH> <YEAR>', e.g. 'JULI 2025'")
        return value

    @field_validator("class_name")
    @classmethod
    def _strip_class_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("className must not be blank")
        return value


class LoginRequest(BaseModel):
    """Request body for ``POST /api/auth/login``."""

    email: EmailStr
    password: str


class SessionUser(BaseModel):
    """The authenticated staff member, as kept in the session cookie."""

    jwt: str
    id: str
    name: str
    email: str
    nip: str = ""
    role: str = ""

    def public(self) -> dict:
        """Session data safe to hand back to the browser (no token)."""
        return self.model_dump(exclude={"jwt"})
