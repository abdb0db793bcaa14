from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

import pandas as pd
import pytz

from .models import (
    BalanceStatus,
    DailyClaim,
    DailySummary,
    StaffEntry,
    StaffTotals,
)

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE = 0.01

ClaimLoader = Callable[[str], Union[DailyClaim, Mapping[str, Any], None]]


# -----------------------------
# Helpers: dates
# -----------------------------
def parse_claim_date(s: Any) -> Optional[date]:
    """Parse a YYYY-MM-DD key. Returns None for anything else."""
    if not isinstance(s, str):
        return None
    try:
        return datetime.strptime(s.strip(), "%Y-%m-%d").date()
    except ValueError:
        return None


def previous_day(date_str: str) -> Optional[str]:
    d = parse_claim_date(date_str)
    if d is None:
        return None
    return (d - timedelta(days=1)).isoformat()


def local_today(timezone: str) -> date:
    """Today's calendar date in the given timezone (e.g. US/Eastern)."""
    tz = pytz.timezone(timezone)
    return datetime.now(tz).date()


# -----------------------------
# Per-staff calculation
# -----------------------------
def calculate_staff(entry: StaffEntry, tolerance: float = DEFAULT_TOLERANCE) -> StaffTotals:
    """
    Derive the reconciliation figures for one staff entry.

    assigned_scanned is predicted_closing solved for the agent sum with the
    reported closing balance taken as ground truth, so it reflects what was
    actually scanned even when the agent parcel list is stale.
    """
    agent_sum = sum(entry.agent_parcels)
    extra_sum = sum(entry.additional_balance_only)
    today_sum = sum(entry.additional_today_wins)

    wins_for_balance = agent_sum + extra_sum + today_sum
    predicted_closing = (
        entry.previous_balance + wins_for_balance - entry.mail_amount - entry.return_claims
    )
    balance_diff = entry.actual_closing_balance - predicted_closing
    assigned_scanned = (
        entry.mail_amount
        + entry.actual_closing_balance
        - entry.previous_balance
        - entry.return_claims
        - extra_sum
        - today_sum
    )

    return StaffTotals(
        agent_sum=agent_sum,
        extra_sum=extra_sum,
        today_sum=today_sum,
        wins_for_balance=wins_for_balance,
        predicted_closing=predicted_closing,
        balance_diff=balance_diff,
        assigned_scanned=assigned_scanned,
        is_reconciled=abs(balance_diff) < tolerance,
    )


# -----------------------------
# Daily aggregation
# -----------------------------
def summarize_day(claim: DailyClaim, tolerance: float = DEFAULT_TOLERANCE) -> DailySummary:
    """Sum assigned-scanned over all staff and compare it to the target."""
    total = sum(calculate_staff(e, tolerance).assigned_scanned for e in claim.staff_entries)
    difference = total - claim.target_amount
    is_balanced = abs(difference) < tolerance

    # A zero target means "not set yet": neither balanced nor mismatch is reported
    if claim.target_amount == 0:
        status = BalanceStatus.NO_TARGET
    elif is_balanced:
        status = BalanceStatus.BALANCED
    else:
        status = BalanceStatus.MISMATCH

    return DailySummary(
        date=claim.date,
        target_amount=claim.target_amount,
        total_assigned_scanned=total,
        difference=difference,
        is_balanced=is_balanced,
        status=status,
        staff_count=len(claim.staff_entries),
    )


# -----------------------------
# Carry-forward (previous day's "today wins")
# -----------------------------
def carry_forward_totals(claim: Union[DailyClaim, Mapping[str, Any], None]) -> Dict[str, float]:
    """
    Sum additionalTodayWins per staff name.

    Staff names are not unique: entries sharing a name are merged by summation.
    Blank names and zero totals are left out.
    """
    if claim is None:
        return {}
    if not isinstance(claim, DailyClaim):
        claim = DailyClaim.from_dict(claim)

    rows = []
    for e in claim.staff_entries:
        name = e.staff_name.strip()
        if not name:
            continue
        rows.append({"staff_name": name, "today_sum": sum(e.additional_today_wins)})
    if not rows:
        return {}

    df = pd.DataFrame(rows)
    totals = df.groupby("staff_name", sort=False)["today_sum"].sum()
    return {str(name): float(total) for name, total in totals.items() if total > 0}


def resolve_carry_forward(date_str: str, load_claim: ClaimLoader) -> Dict[str, float]:
    """
    Brought-forward wins for date_str, taken from the previous calendar day.

    Advisory only: an invalid date, a missing previous record or a failing
    loader all give an empty mapping.
    """
    prev = previous_day(date_str)
    if prev is None:
        return {}

    try:
        prior = load_claim(prev)
    except Exception as e:
        logger.warning(f"[WARN] Carry-forward lookup for {prev} failed: {e}")
        return {}

    if prior is None:
        return {}
    if not isinstance(prior, (DailyClaim, Mapping)):
        logger.warning(f"[WARN] Carry-forward record for {prev} is malformed, ignoring")
        return {}
    return carry_forward_totals(prior)


# -----------------------------
# Admin gate
# -----------------------------
def apply_edits(current: DailyClaim, submitted: DailyClaim, is_admin: bool) -> DailyClaim:
    """
    Merge a submitted claim over the stored one.

    Admins replace the whole record. Everyone else keeps the stored target,
    roster (entry ids), previous balances and agent parcels; the rest of each
    existing entry comes from the submission.
    """
    if is_admin:
        return DailyClaim(
            date=current.date,
            target_amount=submitted.target_amount,
            staff_entries=list(submitted.staff_entries),
        )

    submitted_by_id = {e.id: e for e in submitted.staff_entries}
    unknown = [e.id for e in submitted.staff_entries if current.entry_by_id(e.id) is None]
    if unknown:
        logger.info(f"Ignoring {len(unknown)} staff entries added without admin access on {current.date}")

    merged: List[StaffEntry] = []
    for stored in current.staff_entries:
        sub = submitted_by_id.get(stored.id)
        if sub is None:
            merged.append(stored)
            continue
        merged.append(
            StaffEntry(
                id=stored.id,
                staff_name=sub.staff_name,
                agent_parcels=list(stored.agent_parcels),
                additional_balance_only=list(sub.additional_balance_only),
                additional_today_wins=list(sub.additional_today_wins),
                previous_balance=stored.previous_balance,
                mail_amount=sub.mail_amount,
                return_claims=sub.return_claims,
                actual_closing_balance=sub.actual_closing_balance,
            )
        )

    return DailyClaim(
        date=current.date,
        target_amount=current.target_amount,
        staff_entries=merged,
    )


# -----------------------------
# Daily view
# -----------------------------
def build_daily_view(
    claim: DailyClaim,
    carry_forward: Optional[Dict[str, float]] = None,
    tolerance: float = DEFAULT_TOLERANCE,
) -> Dict[str, Any]:
    """Everything the daily screen shows, computed fresh from the raw entries."""
    staff = []
    for e in claim.staff_entries:
        row = e.to_dict()
        row["totals"] = calculate_staff(e, tolerance).to_dict()
        staff.append(row)

    return {
        "date": claim.date,
        "previousDate": previous_day(claim.date),
        "staff": staff,
        "summary": summarize_day(claim, tolerance).to_dict(),
        "carryForward": dict(carry_forward or {}),
    }


def staff_frame(view: Dict[str, Any]) -> pd.DataFrame:
    """One row per staff entry with its derived figures, for reports."""
    cols = [
        "staff_name", "previous_balance", "agent_sum", "extra_sum", "today_sum",
        "wins_for_balance", "mail_amount", "return_claims", "predicted_closing",
        "actual_closing_balance", "balance_diff", "assigned_scanned", "reconciled",
    ]
    rows = []
    for s in view.get("staff", []):
        t = s["totals"]
        rows.append({
            "staff_name": s["staffName"],
            "previous_balance": s["previousBalance"],
            "agent_sum": t["agentSum"],
            "extra_sum": t["extraSum"],
            "today_sum": t["todaySum"],
            "wins_for_balance": t["winsForBalance"],
            "mail_amount": s["mailAmount"],
            "return_claims": s["returnClaims"],
            "predicted_closing": t["predictedClosing"],
            "actual_closing_balance": s["actualClosingBalance"],
            "balance_diff": round(t["balanceDiff"], 2),
            "assigned_scanned": round(t["assignedScanned"], 2),
            "reconciled": t["isReconciled"],
        })
    if not rows:
        return pd.DataFrame(columns=cols)
    return pd.DataFrame(rows, columns=cols)
