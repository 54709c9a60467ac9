"""
Tests for the mortgage request service: create, merge + re-evaluate, concurrency retries, delete, list.
Run from the project root: python -m pytest tests/test_mortgage_service.py -v
"""
import os
import tempfile
import unittest
from unittest.mock import AsyncMock, patch

from sqlalchemy.orm.exc import StaleDataError

from config import settings
from schemas.mortgage import MortgageStatus
from services import mortgage as mortgage_service
from services.exceptions import ConcurrencyConflict, DuplicateApplicationError, NotFoundError, ValidationError
from tests.db_case import DatabaseTestCase

ALICE_DATA = {
    "income_annual": 90_000,
    "credit_score": 700,
    "employment_employer": "Acme",
    "property_value": 300_000,
    "property_loan_amount": 240_000,
}


class TestCreateMortgageRequest(DatabaseTestCase):
    async def test_create_starts_pending(self):
        request = await mortgage_service.create_mortgage_request(self.session, "alice")
        self.assertEqual(request.status, MortgageStatus.PENDING.value)
        self.assertEqual(request.status_reason, "Application submitted - awaiting documentation")
        self.assertEqual(len(request.missing_requirements), 4)
        self.assertEqual(request.request_data, {})
        self.assertIsNotNone(request.created_at)

    async def test_duplicate_applicant_rejected(self):
        await mortgage_service.create_mortgage_request(self.session, "alice")
        with self.assertRaises(DuplicateApplicationError):
            await mortgage_service.create_mortgage_request(self.session, "alice")

    async def test_blank_applicant_rejected(self):
        with self.assertRaises(ValidationError):
            await mortgage_service.create_mortgage_request(self.session, "   ")

    async def test_lookup_by_applicant(self):
        created = await mortgage_service.create_mortgage_request(self.session, "bob")
        found = await mortgage_service.get_mortgage_request_by_applicant(self.session, "bob")
        self.assertEqual(found.id, created.id)
        with self.assertRaises(NotFoundError):
            await mortgage_service.get_mortgage_request_by_applicant(self.session, "carol")

    async def test_lookup_strips_applicant_id(self):
        created = await mortgage_service.create_mortgage_request(self.session, " dana ")
        self.assertEqual(created.applicant_id, "dana")
        for applicant_id in (" dana ", "dana", "dana\t"):
            with self.subTest(applicant_id=applicant_id):
                found = await mortgage_service.get_mortgage_request_by_applicant(self.session, applicant_id)
                self.assertEqual(found.id, created.id)


class TestMergeMortgageData(DatabaseTestCase):
    async def asyncSetUp(self):
        await super().asyncSetUp()
        self.request = await mortgage_service.create_mortgage_request(self.session, "alice")
        await self.session.commit()

    async def test_scenario_approved(self):
        request = await mortgage_service.merge_mortgage_data(self.session, self.request.id, ALICE_DATA)
        self.assertEqual(request.status, MortgageStatus.APPROVED.value)
        self.assertEqual(request.missing_requirements, [])

    async def test_merge_is_additive(self):
        await mortgage_service.merge_mortgage_data(self.session, self.request.id, {"a": 1})
        request = await mortgage_service.merge_mortgage_data(self.session, self.request.id, {"b": 2})
        self.assertEqual(request.request_data, {"a": 1, "b": 2})

    async def test_merge_overwrites_key(self):
        await mortgage_service.merge_mortgage_data(self.session, self.request.id, {"a": 1})
        request = await mortgage_service.merge_mortgage_data(self.session, self.request.id, {"a": 2})
        self.assertEqual(request.request_data["a"], 2)

    async def test_partial_data_requires_more_info(self):
        request = await mortgage_service.merge_mortgage_data(
            self.session, self.request.id, {"income_annual": 120_000, "credit_score": 700}
        )
        self.assertEqual(request.status, MortgageStatus.REQUIRES_ADDITIONAL_INFO.value)
        self.assertEqual(request.missing_requirements, ["Employment", "Property"])

    async def test_approved_is_not_terminal(self):
        await mortgage_service.merge_mortgage_data(self.session, self.request.id, ALICE_DATA)
        request = await mortgage_service.merge_mortgage_data(self.session, self.request.id, {"credit_score": 600})
        self.assertEqual(request.status, MortgageStatus.REJECTED.value)
        self.assertIn("600 < 650", request.status_reason)

    async def test_malformed_value_stored_verbatim(self):
        request = await mortgage_service.merge_mortgage_data(
            self.session, self.request.id, {**ALICE_DATA, "credit_score": "abc"}
        )
        self.assertEqual(request.status, MortgageStatus.UNDER_REVIEW.value)
        self.assertEqual(request.request_data["credit_score"], "abc")

    async def test_updated_at_refreshed(self):
        before = self.request.updated_at
        request = await mortgage_service.merge_mortgage_data(self.session, self.request.id, {"a": 1})
        self.assertGreaterEqual(request.updated_at, before)

    async def test_refresh_keeps_fields(self):
        await mortgage_service.merge_mortgage_data(self.session, self.request.id, ALICE_DATA)
        request = await mortgage_service.refresh_status(self.session, self.request.id)
        self.assertEqual(request.request_data, ALICE_DATA)
        self.assertEqual(request.status, MortgageStatus.APPROVED.value)

    async def test_unknown_request(self):
        with self.assertRaises(NotFoundError):
            await mortgage_service.merge_mortgage_data(self.session, "mortgage-missing", {"a": 1})

    async def test_gives_up_after_retries(self):
        flush = AsyncMock(side_effect=StaleDataError("row version changed"))
        with patch.object(self.session, "flush", new=flush):
            with self.assertRaises(ConcurrencyConflict) as ctx:
                await mortgage_service.merge_mortgage_data(self.session, self.request.id, {"a": 1})
        self.assertEqual(ctx.exception.attempts, settings.merge_max_retries)
        self.assertEqual(flush.await_count, settings.merge_max_retries)


class TestConcurrentMerge(DatabaseTestCase):
    """Two sessions on a file database so each gets its own connection."""

    async def asyncSetUp(self):
        self._tmpdir = tempfile.TemporaryDirectory()
        self.database_url = f"sqlite+aiosqlite:///{os.path.join(self._tmpdir.name, 'mortgage.db')}"
        await super().asyncSetUp()

    async def asyncTearDown(self):
        await super().asyncTearDown()
        self._tmpdir.cleanup()

    async def test_stale_writer_reloads_and_keeps_both_updates(self):
        request = await mortgage_service.create_mortgage_request(self.session, "alice")
        await self.session.commit()

        # First session has the row loaded at version 1
        await mortgage_service.get_mortgage_request(self.session, request.id)

        async with self.sessionmaker() as other:
            await mortgage_service.merge_mortgage_data(other, request.id, {"income_annual": 90_000})
            await other.commit()

        merged = await mortgage_service.merge_mortgage_data(self.session, request.id, {"credit_score": 700})
        await self.session.commit()
        self.assertEqual(merged.request_data, {"income_annual": 90_000, "credit_score": 700})
        self.assertEqual(merged.version, 3)


class TestDeleteAndList(DatabaseTestCase):
    async def test_delete(self):
        request = await mortgage_service.create_mortgage_request(self.session, "alice")
        await mortgage_service.delete_mortgage_request(self.session, request.id)
        with self.assertRaises(NotFoundError):
            await mortgage_service.get_mortgage_request(self.session, request.id)
        with self.assertRaises(NotFoundError):
            await mortgage_service.delete_mortgage_request(self.session, request.id)

    async def test_list_filters_by_status_and_pages(self):
        alice = await mortgage_service.create_mortgage_request(self.session, "alice")
        await mortgage_service.create_mortgage_request(self.session, "bob")
        await mortgage_service.create_mortgage_request(self.session, "carol")
        await mortgage_service.merge_mortgage_data(self.session, alice.id, ALICE_DATA)

        approved = await mortgage_service.list_mortgage_requests(self.session, status="approved")
        self.assertEqual([r.applicant_id for r in approved], ["alice"])

        everything = await mortgage_service.list_mortgage_requests(self.session, status="NoSuchStatus")
        self.assertEqual(len(everything), 3)

        page_two = await mortgage_service.list_mortgage_requests(self.session, page=2, page_size=2)
        self.assertEqual(len(page_two), 1)

        with self.assertRaises(ValidationError):
            await mortgage_service.list_mortgage_requests(self.session, page=0)


if __name__ == "__main__":
    unittest.main()
