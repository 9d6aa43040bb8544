from datetime import datetime, timedelta, timezone
from decimal import Decimal

from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.modules.bills.models import Bill, BillPayment
from src.modules.bills.projection import drain_background_tasks
from src.shared.utils.object_id import generate_object_id

BILLS_URL = "/api/v1/bills"


def _ada(**overrides) -> dict:
    row = {
        "id": 1712345678901,
        "name": "Ada",
        "school": "St. Mary",
        "academicYear": "2025/2026",
        "schoolType": "primary",
        "primary1stTerm": "50000",
        "amtPaid": "50000",
    }
    row.update(overrides)
    return row


class TestSaveBillsApi:
    """Tests for POST /bills."""

    async def test_first_save(self, client: AsyncClient):
        """New bill gets the first serial and one ledger entry."""
        response = await client.post(BILLS_URL, json=[_ada()])

        assert response.status_code == 201
        result = response.json()
        assert result["success"] is True
        assert result["message"] == "Bills saved successfully"
        assert result["errors"] is None
        [bill] = result["data"]
        assert bill["sn"] == "001"
        assert bill["name"] == "Ada"
        assert bill["amtPaid"] == "50000"
        assert bill["primary2ndTerm"] == "0"
        assert bill["paymentDate"] is not None
        assert [Decimal(p["amount"]) for p in bill["payments"]] == [Decimal("50000")]
        assert len(bill["_id"]) == 24
        assert bill["payments"][0]["amount"] == "50000.00"

    async def test_resubmit_records_increment(self, client: AsyncClient):
        """Saving a higher paid amount appends the difference to the ledger."""
        first = (await client.post(BILLS_URL, json=[_ada()])).json()["data"][0]

        response = await client.post(
            BILLS_URL, json=[_ada(_id=first["_id"], id=first["_id"], amtPaid="80000")]
        )

        assert response.status_code == 201
        [bill] = response.json()["data"]
        assert bill["_id"] == first["_id"]
        assert bill["sn"] == "001"
        assert [Decimal(p["amount"]) for p in bill["payments"]] == [
            Decimal("50000"),
            Decimal("30000"),
        ]

    async def test_placeholder_id_does_not_duplicate(
        self, client: AsyncClient, db_session: AsyncSession
    ):
        """A row with a client-side id matches the stored bill by name, school and year."""
        first = (await client.post(BILLS_URL, json=[_ada()])).json()["data"][0]

        response = await client.post(
            BILLS_URL, json=[_ada(_id="row-7", primary2ndTerm="40000")]
        )

        [bill] = response.json()["data"]
        assert bill["_id"] == first["_id"]
        assert bill["primary2ndTerm"] == "40000"
        count = await db_session.execute(select(func.count()).select_from(Bill))
        assert count.scalar_one() == 1

    async def test_numeric_amounts_are_stored_as_strings(self, client: AsyncClient):
        """Numbers sent for amounts come back as decimal-strings."""
        response = await client.post(
            BILLS_URL, json=[_ada(amtPaid=1250.5, primary1stTerm=3000, primary3rdTerm="")]
        )

        [bill] = response.json()["data"]
        assert bill["amtPaid"] == "1250.5"
        assert bill["primary1stTerm"] == "3000"
        assert bill["primary3rdTerm"] == "0"

    async def test_partial_failure(self, client: AsyncClient):
        """One invalid row fails alone; the rest are saved."""
        response = await client.post(
            BILLS_URL,
            json=[_ada(name="A"), _ada(name=""), _ada(name="C")],
        )

        assert response.status_code == 200
        result = response.json()
        assert result["success"] is True
        assert result["message"] == "Saved 2 of 3 bills"
        assert [(e["index"], e["name"]) for e in result["errors"]] == [(1, "")]
        assert len(result["warnings"]) == 1
        assert sorted(b["name"] for b in result["data"]) == ["A", "C"]

    async def test_all_rows_failing(self, client: AsyncClient):
        """Nothing saved is a server error with per-row errors."""
        response = await client.post(
            BILLS_URL, json=[_ada(name=""), _ada(name="B", schoolType="college")]
        )

        assert response.status_code == 500
        result = response.json()
        assert result["success"] is False
        assert [e["index"] for e in result["errors"]] == [0, 1]
        assert result["data"] == []

    async def test_empty_batch(self, client: AsyncClient):
        """An empty array is rejected."""
        response = await client.post(BILLS_URL, json=[])

        assert response.status_code == 422
        assert response.json()["success"] is False

    async def test_body_must_be_an_array(self, client: AsyncClient):
        """A single object instead of an array is rejected."""
        response = await client.post(BILLS_URL, json=_ada())

        assert response.status_code == 422


class TestListBillsApi:
    """Tests for GET /bills."""

    async def test_filter_by_academic_year(self, client: AsyncClient, seed_bill):
        """Only bills of the requested year are listed, newest first."""
        now = datetime.now(timezone.utc)
        await seed_bill(serial="001", student_name="Old", created_at=now - timedelta(days=1))
        await seed_bill(serial="002", student_name="New", created_at=now)
        await seed_bill(serial="003", student_name="Other", academic_year="2024/2025")

        response = await client.get(BILLS_URL, params={"academicYear": "2025/2026"})

        assert response.status_code == 200
        assert [b["name"] for b in response.json()["data"]] == ["New", "Old"]

    async def test_legacy_bill_is_migrated(
        self, client: AsyncClient, seed_bill, session_factory
    ):
        """A paid bill without assistance shows its paid amount as first-period assistance."""
        bill = await seed_bill(school_type="secondary", amount_paid="40000")

        response = await client.get(BILLS_URL)

        [item] = response.json()["data"]
        assert item["assistSecondary1stTerm"] == "40000"
        assert item["amtPaid"] == "40000"

        await drain_background_tasks()
        async with session_factory() as session:
            stored = await session.get(Bill, bill.id)
            assert stored.assist_secondary_1st_term == "40000"

        again = await client.get(BILLS_URL)
        assert again.json()["data"][0]["assistSecondary1stTerm"] == "40000"


class TestSingleBillApi:
    """Tests for GET/PATCH/DELETE /bills/{id} and the payments drill-down."""

    async def test_get_bill(self, client: AsyncClient, seed_bill):
        """Get a bill by id."""
        bill = await seed_bill()

        response = await client.get(f"{BILLS_URL}/{bill.id}")

        assert response.status_code == 200
        assert response.json()["data"]["_id"] == bill.id

    async def test_unknown_and_malformed_ids(self, client: AsyncClient):
        """Unknown and malformed ids are both not found."""
        for bill_id in (generate_object_id(), "not-an-id"):
            assert (await client.get(f"{BILLS_URL}/{bill_id}")).status_code == 404
            assert (
                await client.patch(f"{BILLS_URL}/{bill_id}", json={"school": "X"})
            ).status_code == 404
            assert (await client.delete(f"{BILLS_URL}/{bill_id}")).status_code == 404
            assert (await client.get(f"{BILLS_URL}/{bill_id}/payments")).status_code == 404

    async def test_patch_bill(self, client: AsyncClient, seed_bill):
        """Patch changes the submitted fields and never the serial or ledger."""
        bill = await seed_bill(serial="004", amount_paid="100")

        response = await client.patch(
            f"{BILLS_URL}/{bill.id}",
            json={"school": "New School", "amtPaid": "900", "sn": "999"},
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["school"] == "New School"
        assert data["amtPaid"] == "900"
        assert data["sn"] == "004"
        assert data["name"] == "Ada"
        assert data["payments"] == []

    async def test_patch_rejects_invalid_values(self, client: AsyncClient, seed_bill):
        """Blank name or unknown school type is a validation error."""
        bill = await seed_bill()

        blank = await client.patch(f"{BILLS_URL}/{bill.id}", json={"name": " "})
        bad_type = await client.patch(f"{BILLS_URL}/{bill.id}", json={"schoolType": "college"})

        assert blank.status_code == 422
        assert blank.json()["errors"][0]["field"] == "name"
        assert bad_type.status_code == 422

    async def test_delete_bill(
        self, client: AsyncClient, db_session: AsyncSession
    ):
        """Deleting a bill removes its payment history too."""
        created = (await client.post(BILLS_URL, json=[_ada()])).json()["data"][0]

        response = await client.delete(f"{BILLS_URL}/{created['_id']}")

        assert response.status_code == 200
        assert response.json()["message"] == "Bill deleted"
        assert (await client.get(f"{BILLS_URL}/{created['_id']}")).status_code == 404
        count = await db_session.execute(select(func.count()).select_from(BillPayment))
        assert count.scalar_one() == 0

    async def test_list_payments(self, client: AsyncClient):
        """Payments come back oldest first with the period tag."""
        first = (await client.post(BILLS_URL, json=[_ada()])).json()["data"][0]
        await client.post(
            BILLS_URL,
            json=[_ada(_id=first["_id"], amtPaid="65000", assistPrimary1stTerm="5000")],
        )

        response = await client.get(f"{BILLS_URL}/{first['_id']}/payments")

        assert response.status_code == 200
        payments = response.json()["data"]
        assert [Decimal(p["amount"]) for p in payments] == [Decimal("50000"), Decimal("15000")]
        assert [p["period"] for p in payments] == [None, "primary1stTerm"]


class TestSummaryApi:
    """Tests for GET /bills/summary."""

    async def test_summary(self, client: AsyncClient, seed_bill):
        """Totals are per school type and overall, for the requested year."""
        await seed_bill(
            serial="001",
            primary_1st_term="50000",
            primary_2nd_term="40000",
            secondary_1st_term="99999",
            amount_paid="60000",
        )
        await seed_bill(
            serial="002",
            student_name="Grace",
            school_type="secondary",
            secondary_1st_term="100000",
        )
        await seed_bill(serial="003", student_name="Alan", academic_year="2024/2025")

        response = await client.get(
            f"{BILLS_URL}/summary", params={"academicYear": "2025/2026"}
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["academicYear"] == "2025/2026"
        assert data["totalStudents"] == 2
        assert Decimal(data["totalBilled"]) == Decimal("190000")
        assert Decimal(data["totalPaid"]) == Decimal("60000")
        assert Decimal(data["outstanding"]) == Decimal("130000")
        assert data["collectionRatePercent"] == 31.6
        by_type = {t["schoolType"]: t for t in data["bySchoolType"]}
        assert by_type["primary"]["students"] == 1
        assert Decimal(by_type["secondary"]["billed"]) == Decimal("100000")
        assert by_type["university"]["students"] == 0

    async def test_summary_without_bills(self, client: AsyncClient):
        """Nothing billed gives zero totals and no collection rate."""
        response = await client.get(f"{BILLS_URL}/summary")

        data = response.json()["data"]
        assert data["totalStudents"] == 0
        assert data["collectionRatePercent"] is None
