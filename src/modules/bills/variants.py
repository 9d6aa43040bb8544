"""Per-school-type views of a flat bill row.

Storage keeps every period column on every bill; only the set matching
``school_type`` is meaningful. ``to_variant`` reads a row into the variant
for its school type so callers work with that type's periods only.
"""

from decimal import Decimal
from typing import Annotated, ClassVar, Literal, Union

from pydantic import Field, TypeAdapter

from src.modules.bills.models import ASSIST_FIELDS, FEE_FIELDS, Bill, SchoolType
from src.shared.schemas.base import BaseSchema
from src.shared.utils.money import parse_amount


class _BillVariant(BaseSchema):
    fee_fields: ClassVar[tuple[str, ...]] = ()
    assist_fields: ClassVar[tuple[str, ...]] = ()

    id: str | None = None
    serial: str | None = None
    student_name: str
    school_name: str = ""
    academic_year: str = ""
    amount_paid: str = "0"
    fees: list[str]
    assistance: list[str]

    def total_fees(self) -> Decimal:
        return sum((parse_amount(v) for v in self.fees), Decimal("0"))

    def total_assistance(self) -> Decimal:
        return sum((parse_amount(v) for v in self.assistance), Decimal("0"))

    @property
    def first_assist_field(self) -> str:
        return self.assist_fields[0]

    def flat_fields(self) -> dict[str, str]:
        """Period values keyed by storage column."""
        values = dict(zip(self.fee_fields, self.fees))
        values.update(zip(self.assist_fields, self.assistance))
        return values


class PrimaryBill(_BillVariant):
    fee_fields: ClassVar[tuple[str, ...]] = FEE_FIELDS[SchoolType.PRIMARY]
    assist_fields: ClassVar[tuple[str, ...]] = ASSIST_FIELDS[SchoolType.PRIMARY]

    school_type: Literal["primary"] = "primary"
    fees: list[str] = Field(min_length=3, max_length=3)
    assistance: list[str] = Field(min_length=3, max_length=3)


class SecondaryBill(_BillVariant):
    fee_fields: ClassVar[tuple[str, ...]] = FEE_FIELDS[SchoolType.SECONDARY]
    assist_fields: ClassVar[tuple[str, ...]] = ASSIST_FIELDS[SchoolType.SECONDARY]

    school_type: Literal["secondary"] = "secondary"
    fees: list[str] = Field(min_length=3, max_length=3)
    assistance: list[str] = Field(min_length=3, max_length=3)


class UniversityBill(_BillVariant):
    fee_fields: ClassVar[tuple[str, ...]] = FEE_FIELDS[SchoolType.UNIVERSITY]
    assist_fields: ClassVar[tuple[str, ...]] = ASSIST_FIELDS[SchoolType.UNIVERSITY]

    school_type: Literal["university"] = "university"
    fees: list[str] = Field(min_length=2, max_length=2)
    assistance: list[str] = Field(min_length=2, max_length=2)


BillVariant = Annotated[
    Union[PrimaryBill, SecondaryBill, UniversityBill],
    Field(discriminator="school_type"),
]

_variant_adapter: TypeAdapter[BillVariant] = TypeAdapter(BillVariant)


def _blank_to_zero(value: str | None) -> str:
    return "0" if value is None or value == "" else str(value)


def to_variant(bill: Bill) -> BillVariant:
    """Read a flat bill row into its school-type variant.

    Raises ValueError when the row's school type is not one of the known types.
    """
    if not bill.has_known_school_type:
        raise ValueError(f"Unknown school type: {bill.school_type!r}")
    school_type = SchoolType(bill.school_type)
    return _variant_adapter.validate_python(
        {
            "school_type": school_type.value,
            "id": bill.id,
            "serial": bill.serial,
            "student_name": bill.student_name,
            "school_name": bill.school_name or "",
            "academic_year": bill.academic_year or "",
            "amount_paid": _blank_to_zero(bill.amount_paid),
            "fees": [_blank_to_zero(getattr(bill, f)) for f in FEE_FIELDS[school_type]],
            "assistance": [
                _blank_to_zero(getattr(bill, f)) for f in ASSIST_FIELDS[school_type]
            ],
        }
    )
