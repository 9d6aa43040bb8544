"""Serial numbers for new bills."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.modules.bills.models import Bill

SERIAL_WIDTH = 3


def serial_value(serial: str | None) -> int:
    """Numeric value of a serial; anything non-numeric counts as 0."""
    if serial and serial.strip().isdigit():
        return int(serial.strip())
    return 0


def format_serial(number: int) -> str:
    return f"{number:0{SERIAL_WIDTH}d}"


class SerialAllocator:
    """
    Hands out serials for the new rows of one batch.

    The highest stored serial is read once, when the batch starts. A new row
    takes ``last + batch_index + 1``, where ``batch_index`` is its position in
    the whole submitted batch, so a batch mixing updates and creates leaves
    gaps. Two batches that start from the same ``last`` can hand out the same
    serial.

    Examples:
        last serial "005", new rows at batch positions 0 and 2 -> "006", "008"
    """

    def __init__(self, last_serial: str = "000"):
        self.last_serial = last_serial
        self._base = serial_value(last_serial)

    @classmethod
    async def load(cls, db: AsyncSession) -> "SerialAllocator":
        # Numeric maximum; legacy non-numeric serials count as 0
        result = await db.execute(select(Bill.serial).distinct())
        last_serial = max(result.scalars(), key=serial_value, default=None)
        if not serial_value(last_serial):
            last_serial = format_serial(0)
        return cls(last_serial.strip())

    def allocate(self, batch_index: int) -> str:
        return format_serial(self._base + batch_index + 1)
