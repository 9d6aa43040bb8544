"""Match a submitted bill row to the stored bill it edits, if any."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.modules.bills.models import Bill
from src.modules.bills.schemas import BillRowSubmit
from src.shared.utils.object_id import is_valid_object_id


class IdentityResolver:
    """
    Resolves a row by store identifier first, then by natural key
    (student name, school name, academic year).

    Placeholder identifiers from the UI never reach the primary-key lookup:
    anything that is not a well-formed 24-hex identifier is ignored.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def resolve(self, row: BillRowSubmit) -> Bill | None:
        for candidate in row.identifier_candidates():
            if not is_valid_object_id(candidate):
                continue
            bill = await self.db.get(Bill, candidate.lower())
            if bill is not None:
                return bill

        return await self.find_by_natural_key(
            row.student_name, row.school_name, row.academic_year
        )

    async def find_by_natural_key(
        self,
        student_name: str | None,
        school_name: str | None,
        academic_year: str | None,
    ) -> Bill | None:
        """Oldest bill with the same name, school and academic year."""
        if not student_name:
            return None
        result = await self.db.execute(
            select(Bill)
            .where(
                Bill.student_name == student_name,
                Bill.school_name == (school_name or ""),
                Bill.academic_year == (academic_year or ""),
            )
            .order_by(Bill.created_at, Bill.serial)
            .limit(1)
        )
        return result.scalar_one_or_none()
