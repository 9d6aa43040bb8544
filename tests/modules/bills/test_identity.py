from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from src.modules.bills.identity import IdentityResolver
from src.modules.bills.schemas import BillRowSubmit
from src.shared.utils.object_id import generate_object_id


def _row(**payload) -> BillRowSubmit:
    data = {"name": "Ada", "school": "St. Mary", "academicYear": "2025/2026"}
    data.update(payload)
    return BillRowSubmit.model_validate(data)


@pytest.fixture
def get_calls(monkeypatch) -> list:
    """Record every primary-key lookup made through a session."""
    calls = []
    original_get = AsyncSession.get

    async def spy_get(self, entity, ident, *args, **kwargs):
        calls.append(ident)
        return await original_get(self, entity, ident, *args, **kwargs)

    monkeypatch.setattr(AsyncSession, "get", spy_get)
    return calls


class TestIdentityResolver:
    """Tests for matching submitted rows to stored bills."""

    async def test_resolves_by_store_id(self, db_session, seed_bill):
        bill = await seed_bill(student_name="Grace")

        found = await IdentityResolver(db_session).resolve(_row(_id=bill.id, name="Renamed"))

        assert found is not None
        assert found.id == bill.id

    async def test_resolves_by_row_key_holding_store_id(self, db_session, seed_bill):
        bill = await seed_bill()

        found = await IdentityResolver(db_session).resolve(_row(id=bill.id.upper()))

        assert found is not None
        assert found.id == bill.id

    async def test_placeholder_id_skips_key_lookup(self, db_session, seed_bill, get_calls):
        bill = await seed_bill()

        found = await IdentityResolver(db_session).resolve(
            _row(_id="new-row-1", id=1712345678901)
        )

        assert get_calls == []
        assert found is not None
        assert found.id == bill.id

    async def test_unknown_store_id_falls_back_to_natural_key(
        self, db_session, seed_bill, get_calls
    ):
        bill = await seed_bill()
        unknown = generate_object_id()

        found = await IdentityResolver(db_session).resolve(_row(_id=unknown))

        assert get_calls == [unknown]
        assert found is not None
        assert found.id == bill.id

    async def test_natural_key_must_match_all_parts(self, db_session, seed_bill):
        await seed_bill()
        resolver = IdentityResolver(db_session)

        assert await resolver.resolve(_row(school="Other School")) is None
        assert await resolver.resolve(_row(academicYear="2026/2027")) is None
        assert await resolver.resolve(_row(name="Grace")) is None

    async def test_missing_name_matches_nothing(self, db_session, seed_bill):
        await seed_bill(student_name="")

        found = await IdentityResolver(db_session).resolve(_row(name=None))

        assert found is None

    async def test_missing_school_and_year_match_empty_values(self, db_session, seed_bill):
        bill = await seed_bill(school_name="", academic_year="")

        found = await IdentityResolver(db_session).resolve(
            BillRowSubmit.model_validate({"name": "Ada"})
        )

        assert found is not None
        assert found.id == bill.id

    async def test_duplicates_resolve_to_oldest(self, db_session, seed_bill):
        now = datetime.now(timezone.utc)
        oldest = await seed_bill(serial="001", created_at=now - timedelta(days=2))
        await seed_bill(serial="002", created_at=now - timedelta(days=1))

        found = await IdentityResolver(db_session).resolve(_row())

        assert found is not None
        assert found.id == oldest.id
