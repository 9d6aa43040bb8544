"""Read-time normalization of stored bills.

Bills saved before assistance amounts were tracked per period only carry a
single paid amount. On read, such a bill has its paid amount moved into the
first assistance period of its school type. The corrected values are returned
straight away; persisting them happens in a background task whose failure is
only logged.
"""

import asyncio
import logging
from dataclasses import dataclass

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.modules.bills.models import ALL_ASSIST_FIELDS, Bill
from src.modules.bills.variants import to_variant
from src.shared.utils.money import format_amount, parse_amount

logger = logging.getLogger(__name__)

_background_tasks: set[asyncio.Task] = set()


@dataclass(frozen=True)
class AssistanceMigration:
    bill_id: str
    stored: dict[str, str | None]  # assistance columns as read
    values: dict[str, str]  # assistance columns to write


def assistance_values(bill: Bill) -> dict[str, str]:
    """The eight assistance fields with missing values defaulted to "0"."""
    values = {}
    for field in ALL_ASSIST_FIELDS:
        value = getattr(bill, field)
        values[field] = "0" if value is None or value == "" else str(value)
    return values


def normalize_assistance(bill: Bill) -> tuple[dict[str, str], AssistanceMigration | None]:
    """
    Working assistance values for ``bill`` and, for a legacy bill, the
    migration that makes them stable.

    A bill is legacy when every assistance field is zero and the paid amount
    is positive. Once migrated its first assistance field is positive, so a
    second pass finds nothing to do.
    """
    values = assistance_values(bill)
    paid = parse_amount(bill.amount_paid)

    all_zero = all(parse_amount(v) == 0 for v in values.values())
    if not all_zero or paid <= 0 or not bill.has_known_school_type:
        return values, None

    variant = to_variant(bill)
    values[variant.first_assist_field] = format_amount(paid)

    migration = AssistanceMigration(
        bill_id=bill.id,
        stored={field: getattr(bill, field) for field in ALL_ASSIST_FIELDS},
        values=dict(values),
    )
    return values, migration


async def persist_assistance_migration(
    session_factory: async_sessionmaker[AsyncSession],
    migration: AssistanceMigration,
) -> bool:
    """Write a migration in its own session. Returns False if it did not apply."""
    conditions = [Bill.id == migration.bill_id]
    # Only overwrite assistance values that are still the ones we read
    for field, stored in migration.stored.items():
        column = getattr(Bill, field)
        conditions.append(column.is_(None) if stored is None else column == stored)

    try:
        async with session_factory() as session:
            result = await session.execute(
                update(Bill).where(*conditions).values(**migration.values)
            )
            await session.commit()
    except Exception:
        logger.warning(
            "Assistance migration update failed for bill %s",
            migration.bill_id,
            exc_info=True,
        )
        return False

    applied = result.rowcount == 1
    if applied:
        logger.info("Migrated legacy paid amount into assistance for bill %s", migration.bill_id)
    return applied


def schedule_assistance_migration(
    session_factory: async_sessionmaker[AsyncSession],
    migration: AssistanceMigration,
) -> asyncio.Task:
    """Start the migration write without waiting for it."""
    task = asyncio.create_task(persist_assistance_migration(session_factory, migration))
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)
    return task


async def drain_background_tasks() -> None:
    """Wait for outstanding migration writes (shutdown, tests)."""
    while True:
        pending = [task for task in _background_tasks if not task.done()]
        if not pending:
            return
        await asyncio.gather(*pending, return_exceptions=True)
