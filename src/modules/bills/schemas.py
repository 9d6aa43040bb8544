"""Pydantic schemas for Bills module.

Wire keys keep the camelCase names the billing UI sends and expects
(``_id``, ``sn``, ``name``, ``school``, ``amtPaid``, ``primary1stTerm`` ...);
python attributes are snake_case.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import ConfigDict, Field, field_validator

from src.modules.bills.models import AMOUNT_FIELDS
from src.shared.schemas.base import BaseSchema, CamelSchema
from src.shared.utils.money import to_amount_string


# --- Submitted rows ---


class BillFields(BaseSchema):
    """Editable bill fields as submitted by the client.

    Every field is optional and loosely typed: a bad row must reach the
    service and fail on its own instead of rejecting the whole batch.
    """

    model_config = ConfigDict(from_attributes=True, populate_by_name=True, extra="ignore")

    student_name: str | None = Field(None, alias="name")
    school_name: str | None = Field(None, alias="school")
    academic_year: str | None = Field(None, alias="academicYear")
    school_type: str | None = Field(None, alias="schoolType")

    amount_paid: str | None = Field(None, alias="amtPaid")

    primary_1st_term: str | None = Field(None, alias="primary1stTerm")
    primary_2nd_term: str | None = Field(None, alias="primary2ndTerm")
    primary_3rd_term: str | None = Field(None, alias="primary3rdTerm")
    secondary_1st_term: str | None = Field(None, alias="secondary1stTerm")
    secondary_2nd_term: str | None = Field(None, alias="secondary2ndTerm")
    secondary_3rd_term: str | None = Field(None, alias="secondary3rdTerm")
    university_1st_semester: str | None = Field(None, alias="university1stSemester")
    university_2nd_semester: str | None = Field(None, alias="university2ndSemester")

    assist_primary_1st_term: str | None = Field(None, alias="assistPrimary1stTerm")
    assist_primary_2nd_term: str | None = Field(None, alias="assistPrimary2ndTerm")
    assist_primary_3rd_term: str | None = Field(None, alias="assistPrimary3rdTerm")
    assist_secondary_1st_term: str | None = Field(None, alias="assistSecondary1stTerm")
    assist_secondary_2nd_term: str | None = Field(None, alias="assistSecondary2ndTerm")
    assist_secondary_3rd_term: str | None = Field(None, alias="assistSecondary3rdTerm")
    assist_university_1st_semester: str | None = Field(
        None, alias="assistUniversity1stSemester"
    )
    assist_university_2nd_semester: str | None = Field(
        None, alias="assistUniversity2ndSemester"
    )

    @field_validator(*AMOUNT_FIELDS, mode="before")
    @classmethod
    def coerce_amount(cls, v: Any) -> str:
        """Store amounts as decimal-strings; numbers are converted, blanks become "0"."""
        return to_amount_string(v)

    @field_validator("school_name", "academic_year", mode="before")
    @classmethod
    def coerce_text(cls, v: Any) -> str:
        if v is None:
            return ""
        return str(v)

    @field_validator("student_name", "school_type", mode="before")
    @classmethod
    def coerce_optional_text(cls, v: Any) -> str | None:
        if v is None or isinstance(v, str):
            return v
        return str(v)

    def submitted_values(self) -> dict[str, Any]:
        """Fields present in the payload, keyed by column name."""
        return self.model_dump(exclude_unset=True, include=set(BillFields.model_fields))


class BillRowSubmit(BillFields):
    """One row of a batch save.

    ``_id`` is the store identifier when the row was loaded from the server;
    ``id`` is the UI row key, which is either that same identifier or a
    client-side placeholder for rows not saved yet.
    """

    object_id: str | int | None = Field(None, alias="_id")
    client_id: str | int | None = Field(None, alias="id")

    def identifier_candidates(self) -> list[str]:
        return [c for c in (self.object_id, self.client_id) if isinstance(c, str)]

    @property
    def display_name(self) -> str:
        return self.student_name or ""


class BillUpdate(BillFields):
    """Schema for a single-bill PATCH. Serial and ledger are not editable."""


# --- Responses ---


class BillPaymentResponse(BaseSchema):
    """Payment ledger entry."""

    amount: Decimal
    date: datetime
    period: str | None = None


class BillResponse(BaseSchema):
    """Schema for bill response."""

    id: str = Field(alias="_id")
    serial: str = Field(alias="sn")
    student_name: str = Field(alias="name")
    school_name: str = Field(alias="school")
    academic_year: str = Field(alias="academicYear")
    school_type: str = Field(alias="schoolType")

    amount_paid: str = Field("0", alias="amtPaid")

    primary_1st_term: str = Field("0", alias="primary1stTerm")
    primary_2nd_term: str = Field("0", alias="primary2ndTerm")
    primary_3rd_term: str = Field("0", alias="primary3rdTerm")
    secondary_1st_term: str = Field("0", alias="secondary1stTerm")
    secondary_2nd_term: str = Field("0", alias="secondary2ndTerm")
    secondary_3rd_term: str = Field("0", alias="secondary3rdTerm")
    university_1st_semester: str = Field("0", alias="university1stSemester")
    university_2nd_semester: str = Field("0", alias="university2ndSemester")

    assist_primary_1st_term: str = Field("0", alias="assistPrimary1stTerm")
    assist_primary_2nd_term: str = Field("0", alias="assistPrimary2ndTerm")
    assist_primary_3rd_term: str = Field("0", alias="assistPrimary3rdTerm")
    assist_secondary_1st_term: str = Field("0", alias="assistSecondary1stTerm")
    assist_secondary_2nd_term: str = Field("0", alias="assistSecondary2ndTerm")
    assist_secondary_3rd_term: str = Field("0", alias="assistSecondary3rdTerm")
    assist_university_1st_semester: str = Field("0", alias="assistUniversity1stSemester")
    assist_university_2nd_semester: str = Field("0", alias="assistUniversity2ndSemester")

    payment_date: datetime | None = Field(None, alias="paymentDate")
    payments: list[BillPaymentResponse] = []
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")


# Column name -> wire key
FIELD_ALIASES: dict[str, str] = {
    name: field.alias or name for name, field in BillResponse.model_fields.items()
}


# --- Batch save ---


class BatchRowError(BaseSchema):
    """A row that could not be saved."""

    index: int
    name: str
    error: str


class BatchSaveResponse(BaseSchema):
    """Batch save outcome plus the refreshed bills of the batch's academic year."""

    success: bool
    message: str
    data: list[BillResponse]
    errors: list[BatchRowError] | None = None
    warnings: list[str] | None = None


# --- Summary ---


class SchoolTypeTotals(CamelSchema):
    """Totals for one school type."""

    school_type: str
    students: int = 0
    billed: Decimal = Decimal("0")
    paid: Decimal = Decimal("0")
    outstanding: Decimal = Decimal("0")


class BillSummary(CamelSchema):
    """Running totals shown above the bills table."""

    academic_year: str | None = None
    total_students: int = 0
    total_billed: Decimal = Decimal("0")
    total_paid: Decimal = Decimal("0")
    outstanding: Decimal = Decimal("0")
    collection_rate_percent: float | None = None  # 0-100, None if nothing billed
    by_school_type: list[SchoolTypeTotals] = []
