from __future__ import annotations

from datetime import datetime, timezone
from unittest import IsolatedAsyncioTestCase, TestCase

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from mealcraft.models import Base
from mealcraft.schemas import WaitlistSignupRequest
from mealcraft.services.waitlist import (
    QUICK_SIGNUP_REASON,
    calculate_priority_score,
    count_waitlist_interests,
    get_waitlist_stats,
    list_waitlist_entries,
    serialize_waitlist_entry,
    set_waitlist_status,
    upsert_waitlist_entry,
)

LONG_REASON = "I cook for a family of four and need weeknight plans that respect two allergies."


class PriorityScoreTest(TestCase):
    def test_base_score(self):
        self.assertEqual(calculate_priority_score({}), 10)
        self.assertEqual(calculate_priority_score({"reason_for_interest": QUICK_SIGNUP_REASON}), 10)

    def test_every_bonus(self):
        entry = {
            "reason_for_interest": LONG_REASON,
            "dietary_goals": ["lose_weight"],
            "dietary_restrictions": ["vegan"],
            "cooking_experience": "beginner",
            "household_size": 4,
            "feature_priorities": ["meal_plans", "shopping_lists", "macros"],
        }
        self.assertEqual(calculate_priority_score(entry), 10 + 5 + 3 + 2 + 1 + 2 + 6)

    def test_single_person_household_gets_no_bonus(self):
        self.assertEqual(calculate_priority_score({"household_size": 1}), 10)


class SignupRequestTest(TestCase):
    def test_rejects_bad_email_and_short_reason(self):
        with self.assertRaises(ValidationError):
            WaitlistSignupRequest(email="not-an-email", name="Sam")
        with self.assertRaises(ValidationError):
            WaitlistSignupRequest(email="sam@example.com", name="Sam", reasonForInterest="short")
        with self.assertRaises(ValidationError):
            WaitlistSignupRequest(email="sam@example.com", name="Sam", householdSize=21)


class WaitlistServiceTest(IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.engine = create_async_engine("sqlite+aiosqlite:///:memory:", future=True)
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        self.Session = async_sessionmaker(self.engine, expire_on_commit=False)

    async def asyncTearDown(self):
        await self.engine.dispose()

    async def test_quick_signup_then_update_keeps_one_entry(self):
        async with self.Session() as session:
            entry = await upsert_waitlist_entry(
                session,
                WaitlistSignupRequest(email="Sam@Example.com", name="Sam", dietaryGoals=["lose_weight"]),
                ip_address="10.0.0.1",
                user_agent="tests",
            )
            self.assertEqual(entry.email, "sam@example.com")
            self.assertEqual(entry.reason_for_interest, QUICK_SIGNUP_REASON)
            self.assertEqual(entry.status, "waiting")
            self.assertEqual(entry.priority_score, 13)

            again = await upsert_waitlist_entry(
                session,
                WaitlistSignupRequest(
                    email="sam@example.com",
                    name="Sam Cook",
                    reasonForInterest=LONG_REASON,
                    featurePriorities=["meal_plans"],
                ),
            )
            self.assertEqual(again.id, entry.id)
            self.assertEqual(again.name, "Sam Cook")
            self.assertEqual(again.reason_for_interest, LONG_REASON)
            self.assertEqual(again.dietary_goals, ["lose_weight"])
            self.assertEqual(again.ip_address, "10.0.0.1")
            self.assertEqual(again.priority_score, 10 + 5 + 3 + 2)

            third = await upsert_waitlist_entry(
                session, WaitlistSignupRequest(email="sam@example.com", name="Sam Cook")
            )
            self.assertEqual(third.reason_for_interest, LONG_REASON)

            stats = await get_waitlist_stats(session)
        self.assertEqual(stats, {"waiting": 1, "invited": 0, "joined": 0, "declined": 0, "total": 1})

    async def test_overview_orders_by_priority_and_counts_interests(self):
        async with self.Session() as session:
            await upsert_waitlist_entry(
                session,
                WaitlistSignupRequest(email="a@example.com", name="A", featurePriorities=["macros"]),
            )
            await upsert_waitlist_entry(
                session,
                WaitlistSignupRequest(
                    email="b@example.com",
                    name="B",
                    featurePriorities=["meal_plans", "macros"],
                    dietaryGoals=["gain_muscle"],
                ),
            )
            await upsert_waitlist_entry(session, WaitlistSignupRequest(email="c@example.com", name="C"))

            entries = await list_waitlist_entries(session)
            self.assertEqual([e.email for e in entries], ["b@example.com", "a@example.com", "c@example.com"])
            self.assertEqual(len(await list_waitlist_entries(session, limit=1)), 1)

            interests = await count_waitlist_interests(session)
            self.assertEqual(
                interests["featurePriorities"],
                [{"feature": "macros", "count": 2}, {"feature": "meal_plans", "count": 1}],
            )
            self.assertEqual(interests["dietaryGoals"], [{"goal": "gain_muscle", "count": 1}])

            with self.assertRaises(ValueError):
                await list_waitlist_entries(session, status="vip")

    async def test_status_changes_stamp_their_time(self):
        when = datetime(2026, 10, 20, 9, 0, tzinfo=timezone.utc)
        async with self.Session() as session:
            entry = await upsert_waitlist_entry(session, WaitlistSignupRequest(email="a@example.com", name="A"))

            invited = await set_waitlist_status(session, entry.id, "invited", now=when)
            self.assertEqual(invited.status, "invited")
            self.assertEqual(invited.invited_at.replace(tzinfo=timezone.utc), when)
            self.assertIsNone(invited.joined_at)

            waiting = await list_waitlist_entries(session, status="waiting")
            self.assertEqual(waiting, [])
            payload = serialize_waitlist_entry(invited)
            self.assertEqual(payload["status"], "invited")
            self.assertEqual(payload["priorityScore"], 10)

            with self.assertRaises(ValueError):
                await set_waitlist_status(session, entry.id, "vip")
            with self.assertRaises(LookupError):
                await set_waitlist_status(session, entry.id + 100, "joined")

            stats = await get_waitlist_stats(session)
        self.assertEqual(stats["invited"], 1)
        self.assertEqual(stats["total"], 1)
