from typing import Any

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from src.modules.bills.models import Bill
from src.shared.utils.object_id import generate_object_id


@pytest.fixture
def seed_bill(db_session: AsyncSession):
    """Insert a bill straight into the database, bypassing the service."""

    async def _seed(**overrides: Any) -> Bill:
        values: dict[str, Any] = {
            "id": generate_object_id(),
            "serial": "001",
            "student_name": "Ada",
            "school_name": "St. Mary",
            "academic_year": "2025/2026",
            "school_type": "primary",
        }
        values.update(overrides)
        bill = Bill(**values)
        db_session.add(bill)
        await db_session.commit()
        return bill

    return _seed
