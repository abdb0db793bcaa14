"""
Reconciliation engine tests: per-staff figures, daily verdict, carry-forward
"""
import random
import unittest
from datetime import date, datetime
from unittest import mock

import pytz

from claims_backend.engine import (
    apply_edits,
    build_daily_view,
    calculate_staff,
    carry_forward_totals,
    local_today,
    previous_day,
    resolve_carry_forward,
    staff_frame,
    summarize_day,
)
from claims_backend.exceptions import StorageError
from claims_backend.models import BalanceStatus, DailyClaim, StaffEntry


def alice(**overrides):
    fields = dict(
        id="alice",
        staff_name="Alice",
        previous_balance=100,
        agent_parcels=[40, 60],
        additional_balance_only=[10],
        additional_today_wins=[20],
        mail_amount=5,
        return_claims=0,
        actual_closing_balance=225,
    )
    fields.update(overrides)
    return StaffEntry(**fields)


class TestCalculateStaff(unittest.TestCase):

    def test_alice_scenario(self):
        t = calculate_staff(alice())
        self.assertEqual(t.agent_sum, 100)
        self.assertEqual(t.extra_sum, 10)
        self.assertEqual(t.today_sum, 20)
        self.assertEqual(t.wins_for_balance, 130)
        self.assertEqual(t.predicted_closing, 225)
        self.assertEqual(t.balance_diff, 0)
        self.assertEqual(t.assigned_scanned, 100)
        self.assertTrue(t.is_reconciled)

    def test_assigned_scanned_uses_closing_balance_not_parcels(self):
        # agent parcel list is stale: only 40 listed, but 100 was scanned
        t = calculate_staff(alice(agent_parcels=[40]))
        self.assertEqual(t.assigned_scanned, 100)
        self.assertAlmostEqual(t.balance_diff, 60)
        self.assertFalse(t.is_reconciled)

    def test_reconciled_within_tolerance(self):
        self.assertTrue(calculate_staff(alice(actual_closing_balance=225.005)).is_reconciled)
        self.assertFalse(calculate_staff(alice(actual_closing_balance=225.02)).is_reconciled)

    def test_negative_assigned_scanned_is_reported(self):
        t = calculate_staff(alice(actual_closing_balance=0))
        self.assertEqual(t.assigned_scanned, -125)

    def test_empty_entry(self):
        t = calculate_staff(StaffEntry())
        self.assertEqual(t.wins_for_balance, 0)
        self.assertEqual(t.predicted_closing, 0)
        self.assertEqual(t.assigned_scanned, 0)

    def test_formulas_hold_for_random_entries(self):
        rng = random.Random(7)
        for _ in range(200):
            e = StaffEntry(
                agent_parcels=[rng.uniform(0.01, 500) for _ in range(rng.randint(0, 5))],
                additional_balance_only=[rng.uniform(0.01, 500) for _ in range(rng.randint(0, 3))],
                additional_today_wins=[rng.uniform(0.01, 500) for _ in range(rng.randint(0, 3))],
                previous_balance=rng.uniform(-1000, 1000),
                mail_amount=rng.uniform(-100, 500),
                return_claims=rng.uniform(-100, 500),
                actual_closing_balance=rng.uniform(-1000, 2000),
            )
            t = calculate_staff(e)
            expected_predicted = (
                e.previous_balance + sum(e.agent_parcels) + sum(e.additional_balance_only)
                + sum(e.additional_today_wins) - e.mail_amount - e.return_claims
            )
            self.assertAlmostEqual(t.predicted_closing, expected_predicted, delta=1e-9)
            self.assertAlmostEqual(
                t.assigned_scanned + t.extra_sum + t.today_sum + e.previous_balance + e.return_claims,
                e.mail_amount + e.actual_closing_balance,
                delta=1e-9,
            )


class TestSummarizeDay(unittest.TestCase):

    def test_single_staff_balanced(self):
        claim = DailyClaim(date="2025-03-10", target_amount=100, staff_entries=[alice()])
        s = summarize_day(claim)
        self.assertEqual(s.total_assigned_scanned, 100)
        self.assertEqual(s.difference, 0)
        self.assertTrue(s.is_balanced)
        self.assertEqual(s.status, BalanceStatus.BALANCED)
        self.assertEqual(s.staff_count, 1)

    def test_mismatch(self):
        claim = DailyClaim(date="2025-03-10", target_amount=150, staff_entries=[alice()])
        s = summarize_day(claim)
        self.assertEqual(s.difference, -50)
        self.assertFalse(s.is_balanced)
        self.assertEqual(s.status, BalanceStatus.MISMATCH)

    def test_sums_over_all_staff(self):
        entries = [alice(id="a"), alice(id="b", actual_closing_balance=200)]
        s = summarize_day(DailyClaim(date="2025-03-10", target_amount=175, staff_entries=entries))
        self.assertEqual(s.total_assigned_scanned, 175)
        self.assertTrue(s.is_balanced)

    def test_empty_staff_list(self):
        s = summarize_day(DailyClaim(date="2025-03-10", target_amount=50))
        self.assertEqual(s.total_assigned_scanned, 0)
        self.assertEqual(s.difference, -50)
        self.assertEqual(s.status, BalanceStatus.MISMATCH)

    def test_zero_target_suppresses_advisory(self):
        s = summarize_day(DailyClaim(date="2025-03-10"))
        self.assertTrue(s.is_balanced)
        self.assertEqual(s.status, BalanceStatus.NO_TARGET)

        s = summarize_day(DailyClaim(date="2025-03-10", staff_entries=[alice()]))
        self.assertFalse(s.is_balanced)
        self.assertEqual(s.status, BalanceStatus.NO_TARGET)

    def test_tolerance_boundary(self):
        claim = DailyClaim(date="2025-03-10", target_amount=100.005, staff_entries=[alice()])
        self.assertTrue(summarize_day(claim).is_balanced)
        claim.target_amount = 100.02
        self.assertFalse(summarize_day(claim).is_balanced)


class TestCarryForward(unittest.TestCase):

    def test_duplicate_names_are_summed(self):
        prior = DailyClaim(date="2025-03-09", staff_entries=[
            StaffEntry(id="1", staff_name="Bob", additional_today_wins=[10, 5]),
            StaffEntry(id="2", staff_name="Bob", additional_today_wins=[25]),
        ])
        self.assertEqual(carry_forward_totals(prior), {"Bob": 40})

    def test_blank_names_and_zero_totals_omitted(self):
        prior = DailyClaim(date="2025-03-09", staff_entries=[
            StaffEntry(id="1", staff_name="  ", additional_today_wins=[10]),
            StaffEntry(id="2", staff_name="Cara", additional_today_wins=[]),
            StaffEntry(id="3", staff_name="Dan", additional_today_wins=[7.5]),
        ])
        self.assertEqual(carry_forward_totals(prior), {"Dan": 7.5})

    def test_accepts_raw_record(self):
        raw = {"staffEntries": [{"staffName": "Eve", "additionalTodayWins": [3, "bad", -1]}]}
        self.assertEqual(carry_forward_totals(raw), {"Eve": 3})

    def test_resolves_previous_day(self):
        seen = []

        def load(d):
            seen.append(d)
            return {"staffEntries": [
                {"staffName": "Bob", "additionalTodayWins": [15]},
                {"staffName": "Bob", "additionalTodayWins": [25]},
            ]}

        self.assertEqual(resolve_carry_forward("2025-03-01", load), {"Bob": 40})
        self.assertEqual(seen, ["2025-02-28"])

    def test_no_prior_record(self):
        self.assertEqual(resolve_carry_forward("2025-03-10", lambda d: None), {})

    def test_failing_loader_is_soft(self):
        def load(d):
            raise StorageError("store offline")

        self.assertEqual(resolve_carry_forward("2025-03-10", load), {})

    def test_malformed_prior_record(self):
        self.assertEqual(resolve_carry_forward("2025-03-10", lambda d: ["not", "a", "claim"]), {})

    def test_invalid_date_short_circuits(self):
        def load(d):
            raise AssertionError("loader should not be called")

        for bad in ("", "2025-02-30", "yesterday", None):
            self.assertEqual(resolve_carry_forward(bad, load), {})

    def test_previous_day(self):
        self.assertEqual(previous_day("2025-01-01"), "2024-12-31")
        self.assertEqual(previous_day("2024-03-01"), "2024-02-29")
        self.assertIsNone(previous_day("2025-13-01"))

    def test_local_today_uses_timezone(self):
        frozen = datetime(2025, 3, 10, 2, 0, tzinfo=pytz.utc)
        with mock.patch("claims_backend.engine.datetime") as dt:
            dt.now.side_effect = lambda tz: frozen.astimezone(tz)
            self.assertEqual(local_today("UTC"), date(2025, 3, 10))
            self.assertEqual(local_today("US/Eastern"), date(2025, 3, 9))


class TestApplyEdits(unittest.TestCase):

    def setUp(self):
        self.current = DailyClaim(date="2025-03-10", target_amount=100, staff_entries=[alice()])
        self.submitted = DailyClaim(date="2025-03-10", target_amount=999, staff_entries=[
            alice(previous_balance=1, agent_parcels=[1], mail_amount=8, additional_today_wins=[30]),
            StaffEntry(id="intruder", staff_name="Mallory"),
        ])

    def test_admin_replaces_everything(self):
        merged = apply_edits(self.current, self.submitted, is_admin=True)
        self.assertEqual(merged.target_amount, 999)
        self.assertEqual([e.id for e in merged.staff_entries], ["alice", "intruder"])
        self.assertEqual(merged.staff_entries[0].previous_balance, 1)

    def test_staff_cannot_touch_admin_fields(self):
        merged = apply_edits(self.current, self.submitted, is_admin=False)
        self.assertEqual(merged.target_amount, 100)
        self.assertEqual([e.id for e in merged.staff_entries], ["alice"])
        entry = merged.staff_entries[0]
        self.assertEqual(entry.previous_balance, 100)
        self.assertEqual(entry.agent_parcels, [40, 60])
        self.assertEqual(entry.mail_amount, 8)
        self.assertEqual(entry.additional_today_wins, [30])

    def test_staff_cannot_remove_entries(self):
        submitted = DailyClaim(date="2025-03-10", target_amount=100)
        merged = apply_edits(self.current, submitted, is_admin=False)
        self.assertEqual(merged.staff_entries, self.current.staff_entries)


class TestDailyView(unittest.TestCase):

    def test_view_and_frame(self):
        claim = DailyClaim(date="2025-03-10", target_amount=100, staff_entries=[alice()])
        view = build_daily_view(claim, {"Bob": 40})
        self.assertEqual(view["previousDate"], "2025-03-09")
        self.assertEqual(view["summary"]["status"], "balanced")
        self.assertEqual(view["staff"][0]["totals"]["assignedScanned"], 100)
        self.assertEqual(view["carryForward"], {"Bob": 40})

        df = staff_frame(view)
        self.assertEqual(len(df), 1)
        self.assertEqual(df.iloc[0]["staff_name"], "Alice")
        self.assertEqual(df.iloc[0]["assigned_scanned"], 100)

    def test_empty_frame_has_columns(self):
        df = staff_frame(build_daily_view(DailyClaim(date="2025-03-10")))
        self.assertTrue(df.empty)
        self.assertIn("assigned_scanned", df.columns)


if __name__ == "__main__":
    unittest.main()
