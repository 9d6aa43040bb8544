"""Bill and BillPayment models."""

from datetime import datetime
from decimal import Decimal
from enum import StrEnum

from sqlalchemy import DateTime, ForeignKey, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.core.database.base import Base, BigIntPK, ObjectIdType, TimestampedModel
from src.shared.utils.object_id import generate_object_id


class SchoolType(StrEnum):
    """School level; selects which period fields of a bill are active."""

    PRIMARY = "primary"
    SECONDARY = "secondary"
    UNIVERSITY = "university"


SCHOOL_TYPE_VALUES = frozenset(t.value for t in SchoolType)

# Fee fields per school type, in period order
FEE_FIELDS: dict[SchoolType, tuple[str, ...]] = {
    SchoolType.PRIMARY: ("primary_1st_term", "primary_2nd_term", "primary_3rd_term"),
    SchoolType.SECONDARY: ("secondary_1st_term", "secondary_2nd_term", "secondary_3rd_term"),
    SchoolType.UNIVERSITY: ("university_1st_semester", "university_2nd_semester"),
}

# Assistance (subsidy) fields mirror the fee fields one to one
ASSIST_FIELDS: dict[SchoolType, tuple[str, ...]] = {
    school_type: tuple(f"assist_{name}" for name in names)
    for school_type, names in FEE_FIELDS.items()
}

ALL_FEE_FIELDS: tuple[str, ...] = tuple(
    name for names in FEE_FIELDS.values() for name in names
)
ALL_ASSIST_FIELDS: tuple[str, ...] = tuple(
    name for names in ASSIST_FIELDS.values() for name in names
)
AMOUNT_FIELDS: tuple[str, ...] = ("amount_paid",) + ALL_FEE_FIELDS + ALL_ASSIST_FIELDS


def _amount_column():
    # Decimal-strings, never floats
    return mapped_column(String(50), nullable=False, default="0", server_default="0")


class Bill(TimestampedModel):
    """
    One student's fee record for one academic year.

    The row is flat: fee and assistance columns for every school type exist on
    every bill, and ``school_type`` selects the active set.
    """

    __tablename__ = "bills"

    id: Mapped[str] = mapped_column(
        ObjectIdType, primary_key=True, default=generate_object_id
    )
    serial: Mapped[str] = mapped_column(String(20), nullable=False, index=True)

    student_name: Mapped[str] = mapped_column(String(200), nullable=False)
    school_name: Mapped[str] = mapped_column(
        String(200), nullable=False, default="", server_default=""
    )
    academic_year: Mapped[str] = mapped_column(
        String(20), nullable=False, default="", server_default="", index=True
    )  # e.g. "2025/2026"
    school_type: Mapped[str] = mapped_column(String(20), nullable=False)

    amount_paid: Mapped[str] = _amount_column()

    # Primary school terms
    primary_1st_term: Mapped[str] = _amount_column()
    primary_2nd_term: Mapped[str] = _amount_column()
    primary_3rd_term: Mapped[str] = _amount_column()
    # Secondary school terms
    secondary_1st_term: Mapped[str] = _amount_column()
    secondary_2nd_term: Mapped[str] = _amount_column()
    secondary_3rd_term: Mapped[str] = _amount_column()
    # University semesters
    university_1st_semester: Mapped[str] = _amount_column()
    university_2nd_semester: Mapped[str] = _amount_column()

    # Assistance amounts per period
    assist_primary_1st_term: Mapped[str] = _amount_column()
    assist_primary_2nd_term: Mapped[str] = _amount_column()
    assist_primary_3rd_term: Mapped[str] = _amount_column()
    assist_secondary_1st_term: Mapped[str] = _amount_column()
    assist_secondary_2nd_term: Mapped[str] = _amount_column()
    assist_secondary_3rd_term: Mapped[str] = _amount_column()
    assist_university_1st_semester: Mapped[str] = _amount_column()
    assist_university_2nd_semester: Mapped[str] = _amount_column()

    # Set when a payment event is detected on save
    payment_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Relationships
    payments: Mapped[list["BillPayment"]] = relationship(
        "BillPayment",
        back_populates="bill",
        order_by="BillPayment.id",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        Index("ix_bills_natural_key", "student_name", "school_name", "academic_year"),
    )

    @property
    def has_known_school_type(self) -> bool:
        return self.school_type in SCHOOL_TYPE_VALUES


class BillPayment(Base):
    """Payment ledger entry. Rows are appended, never updated or removed."""

    __tablename__ = "bill_payments"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    bill_id: Mapped[str] = mapped_column(
        ObjectIdType, ForeignKey("bills.id", ondelete="CASCADE"), nullable=False, index=True
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    period: Mapped[str | None] = mapped_column(
        String(50), nullable=True
    )  # wire key of the period whose assistance increased, e.g. "primary1stTerm"

    bill: Mapped["Bill"] = relationship("Bill", back_populates="payments")
