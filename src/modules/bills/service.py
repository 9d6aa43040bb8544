"""Service for Bills module."""

import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.core.config import settings
from src.core.exceptions import AppException, BatchSizeError, NotFoundError, ValidationError
from src.core.exceptions.handlers import friendly_db_error
from src.modules.bills.identity import IdentityResolver
from src.modules.bills.models import (
    AMOUNT_FIELDS,
    SCHOOL_TYPE_VALUES,
    Bill,
    BillPayment,
    SchoolType,
)
from src.modules.bills.payment_events import apply_payment_event, detect_payment
from src.modules.bills.projection import (
    normalize_assistance,
    schedule_assistance_migration,
)
from src.modules.bills.schemas import (
    BatchRowError,
    BillResponse,
    BillRowSubmit,
    BillSummary,
    BillUpdate,
    SchoolTypeTotals,
)
from src.modules.bills.serials import SerialAllocator
from src.modules.bills.variants import to_variant
from src.shared.utils.money import parse_amount, round_money
from src.shared.utils.object_id import generate_object_id, is_valid_object_id

logger = logging.getLogger(__name__)


def validate_bill_values(values: dict[str, Any], partial: bool = False) -> None:
    """
    Write-time validation of bill fields.

    With ``partial`` only the fields present in ``values`` are checked, as for
    an update of an existing bill.
    """
    if not partial or "student_name" in values:
        name = values.get("student_name")
        if not name or not name.strip():
            raise ValidationError("Bill validation failed: name is required", field="name")

    if not partial or "school_type" in values:
        school_type = values.get("school_type")
        if school_type not in SCHOOL_TYPE_VALUES:
            raise ValidationError(
                f"Bill validation failed: {school_type!r} is not a valid school type",
                field="schoolType",
            )


def _new_bill_defaults() -> dict[str, Any]:
    defaults: dict[str, Any] = {field: "0" for field in AMOUNT_FIELDS}
    defaults.update(school_name="", academic_year="")
    return defaults


def _describe_error(exc: BaseException) -> str:
    if isinstance(exc, AppException):
        return exc.message
    if isinstance(exc, SQLAlchemyError):
        message, _, _ = friendly_db_error(exc)
        return message
    return str(exc) or exc.__class__.__name__


@dataclass
class BatchSaveResult:
    """Outcome of a batch save."""

    total: int
    succeeded: list[Bill] = field(default_factory=list)
    failed: list[BatchRowError] = field(default_factory=list)
    bills: list[Bill] = field(default_factory=list)  # refreshed list for the academic year

    @property
    def success(self) -> bool:
        return not self.failed or bool(self.succeeded)

    @property
    def status_code(self) -> int:
        if not self.failed:
            return 201
        return 200 if self.succeeded else 500

    @property
    def message(self) -> str:
        if not self.failed:
            return "Bills saved successfully"
        return f"Saved {len(self.succeeded)} of {self.total} bills"

    @property
    def warnings(self) -> list[str]:
        return [f'Failed to save "{e.name}": {e.error}' for e in self.failed]


class BillService:
    """Service for saving, listing and summarising bills."""

    def __init__(
        self,
        db: AsyncSession,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
    ):
        self.db = db
        self.session_factory = session_factory

    def _require_session_factory(self) -> async_sessionmaker[AsyncSession]:
        if self.session_factory is None:
            raise RuntimeError("BillService needs a session factory for this operation")
        return self.session_factory

    # --- Reads ---

    async def _load_bill(self, db: AsyncSession, bill_id: str) -> Bill:
        """Load a bill fresh from the database, ledger included."""
        result = await db.execute(
            select(Bill)
            .where(Bill.id == bill_id)
            .execution_options(populate_existing=True)
        )
        bill = result.scalar_one_or_none()
        if not bill:
            raise NotFoundError("Bill", bill_id)
        return bill

    async def get_bill(self, bill_id: str) -> Bill:
        """Get bill by ID. A malformed ID is reported as not found."""
        if not is_valid_object_id(bill_id):
            raise NotFoundError("Bill", bill_id)
        return await self._load_bill(self.db, bill_id.lower())

    async def list_bills(self, academic_year: str | None = None) -> list[BillResponse]:
        """
        List bills, newest first, with assistance fields normalized.

        Legacy bills are corrected in the returned data immediately and their
        migration is persisted in the background.
        """
        query = select(Bill).order_by(Bill.created_at.desc(), Bill.serial.desc())
        if academic_year:
            query = query.where(Bill.academic_year == academic_year)
        result = await self.db.execute(query.execution_options(populate_existing=True))
        bills = list(result.scalars().all())

        items: list[BillResponse] = []
        for bill in bills:
            values, migration = normalize_assistance(bill)
            if migration is not None:
                if self.session_factory is not None:
                    schedule_assistance_migration(self.session_factory, migration)
                else:
                    logger.warning(
                        "No session factory; assistance migration for bill %s not persisted",
                        bill.id,
                    )
            items.append(BillResponse.model_validate(bill).model_copy(update=values))
        return items

    async def list_bills_for_year(self, academic_year: str | None) -> list[Bill]:
        """Bills of one academic year in serial order."""
        query = select(Bill).order_by(func.length(Bill.serial), Bill.serial)
        if academic_year is not None:
            query = query.where(Bill.academic_year == academic_year)
        result = await self.db.execute(query.execution_options(populate_existing=True))
        return list(result.scalars().all())

    async def list_payments(self, bill_id: str) -> list[BillPayment]:
        """Payment ledger of a bill, oldest first."""
        bill = await self.get_bill(bill_id)
        return list(bill.payments)

    async def get_summary(self, academic_year: str | None = None) -> BillSummary:
        """Billed, paid and outstanding totals, overall and per school type."""
        query = select(Bill)
        if academic_year:
            query = query.where(Bill.academic_year == academic_year)
        result = await self.db.execute(query.execution_options(populate_existing=True))
        bills = list(result.scalars().all())

        per_type = {t: SchoolTypeTotals(school_type=t.value) for t in SchoolType}
        for bill in bills:
            if not bill.has_known_school_type:
                continue
            variant = to_variant(bill)
            totals = per_type[SchoolType(bill.school_type)]
            totals.students += 1
            totals.billed += variant.total_fees()
            totals.paid += parse_amount(bill.amount_paid)

        for totals in per_type.values():
            totals.billed = round_money(totals.billed)
            totals.paid = round_money(totals.paid)
            totals.outstanding = totals.billed - totals.paid

        total_billed = sum((t.billed for t in per_type.values()), Decimal("0"))
        total_paid = sum((t.paid for t in per_type.values()), Decimal("0"))
        collection_rate = None
        if total_billed > 0:
            collection_rate = round(float(total_paid / total_billed * 100), 1)

        return BillSummary(
            academic_year=academic_year,
            total_students=sum(t.students for t in per_type.values()),
            total_billed=round_money(total_billed),
            total_paid=round_money(total_paid),
            outstanding=round_money(total_billed - total_paid),
            collection_rate_percent=collection_rate,
            by_school_type=list(per_type.values()),
        )

    # --- Single-bill writes ---

    async def update_bill(self, bill_id: str, data: BillUpdate) -> Bill:
        """Plain field update. Does not record payments or touch the serial."""
        bill = await self.get_bill(bill_id)
        values = data.submitted_values()
        validate_bill_values(values, partial=True)

        for key, value in values.items():
            setattr(bill, key, value)

        await self.db.commit()
        return await self._load_bill(self.db, bill.id)

    async def delete_bill(self, bill_id: str) -> None:
        """Delete a bill together with its payment ledger."""
        bill = await self.get_bill(bill_id)
        logger.info("Deleting bill %s (sn=%s)", bill.id, bill.serial)
        await self.db.delete(bill)
        await self.db.commit()

    # --- Batch save ---

    async def save_batch(self, rows: list[BillRowSubmit]) -> BatchSaveResult:
        """
        Create or update every row of a batch independently.

        Each row runs in its own session: one row failing never rolls back or
        stops another. The result carries per-row errors and the refreshed
        bills of the first row's academic year.
        """
        if not rows or len(rows) > settings.batch_save_max_rows:
            raise BatchSizeError(len(rows), settings.batch_save_max_rows)

        session_factory = self._require_session_factory()
        logger.info("Processing %d bills", len(rows))

        allocator = await SerialAllocator.load(self.db)
        logger.info("Starting with last serial %s", allocator.last_serial)

        semaphore = asyncio.Semaphore(settings.batch_save_concurrency)
        bill_locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

        async def save(index: int, row: BillRowSubmit) -> Bill:
            async with semaphore:
                return await self._save_row(
                    session_factory, index, row, allocator, bill_locks
                )

        outcomes = await asyncio.gather(
            *(save(index, row) for index, row in enumerate(rows)),
            return_exceptions=True,
        )

        result = BatchSaveResult(total=len(rows))
        for index, outcome in enumerate(outcomes):
            if isinstance(outcome, Bill):
                result.succeeded.append(outcome)
                continue
            if isinstance(outcome, BaseException) and not isinstance(outcome, Exception):
                raise outcome
            error = _describe_error(outcome)
            logger.warning("Failed to save bill at index %d: %s", index, error)
            result.failed.append(
                BatchRowError(index=index, name=rows[index].display_name, error=error)
            )

        logger.info(
            "Save completed: %d successful, %d failed",
            len(result.succeeded),
            len(result.failed),
        )

        result.bills = await self.list_bills_for_year(rows[0].academic_year)
        return result

    async def _save_row(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        index: int,
        row: BillRowSubmit,
        allocator: SerialAllocator,
        bill_locks: defaultdict[str, asyncio.Lock],
    ) -> Bill:
        async with session_factory() as session:
            existing = await IdentityResolver(session).resolve(row)
            values = row.submitted_values()

            if existing is None:
                values = {**_new_bill_defaults(), **values}
                validate_bill_values(values)
                event = detect_payment(None, values)
                bill = Bill(
                    id=generate_object_id(),
                    serial=allocator.allocate(index),
                    **values,
                )
                apply_payment_event(bill, event, datetime.now(timezone.utc))
                session.add(bill)
                await session.commit()
            else:
                validate_bill_values(values, partial=True)
                # Rows of one batch that match the same bill are applied one at
                # a time, each against the previous row's committed values.
                async with bill_locks[existing.id]:
                    bill = await self._load_bill(session, existing.id)
                    event = detect_payment(bill, values)
                    for key, value in values.items():
                        setattr(bill, key, value)
                    apply_payment_event(bill, event, datetime.now(timezone.utc))
                    await session.commit()

            logger.debug(
                "%s bill %s (sn=%s) at index %d%s",
                "Updated" if existing is not None else "Created",
                bill.id,
                bill.serial,
                index,
                f", payment {event.amount}" if event.is_payment else "",
            )
            return await self._load_bill(session, bill.id)
