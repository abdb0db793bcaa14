"""
Claims Data Models

This module defines the records exchanged between the reconciliation engine and
the storage layer:
- DailyClaim: one record per calendar date (the date is the natural key)
- StaffEntry: one staff member's figures for that date
- StaffTotals / DailySummary: derived figures, recomputed on every read

Key concepts:
- The exchange shape is the camelCase mapping produced by to_dict()
- Every raw record passes through the normalizers below exactly once; legacy
  field names are translated there and nowhere else
- Amount sequences only ever hold finite numbers strictly greater than zero
"""
from __future__ import annotations

import math
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional


# =============================================================================
# Enums
# =============================================================================

class BalanceStatus(str, Enum):
    """Daily advisory shown next to the target"""
    BALANCED = "balanced"     # Total assigned-scanned matches the target
    MISMATCH = "mismatch"     # Outside tolerance
    NO_TARGET = "no_target"   # Target is 0, i.e. not set yet; no advisory


# Legacy name -> canonical name. The canonical name wins when both are present.
STAFF_FIELD_ALIASES = {
    "additionalBalanceOnly": "additionalScans",
    "actualClosingBalance": "closingBalance",
}
CLAIM_FIELD_ALIASES = {
    "targetAmount": "totalAgentClaim",
}

AMOUNT_LIST_FIELDS = ("agentParcels", "additionalBalanceOnly", "additionalTodayWins")
SCALAR_FIELDS = ("previousBalance", "mailAmount", "returnClaims", "actualClosingBalance")


# =============================================================================
# Amount coercion
# =============================================================================

def new_entry_id() -> str:
    return uuid.uuid4().hex


def coerce_number(value: Any) -> Optional[float]:
    """Coerce a single value to a finite float, or None if it is not a number."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            return None
    else:
        t = str(value).strip().replace(",", "").replace("$", "")
        if t.startswith("(") and t.endswith(")"):
            t = "-" + t[1:-1]
        if not t:
            return None
        try:
            number = float(t)
        except ValueError:
            return None
    if not math.isfinite(number):
        return None
    return number


def parse_amount(value: Any) -> Optional[float]:
    """
    Parse one drafted parcel amount.

    Returns None for anything that is not a finite number strictly greater than
    zero, so the caller discards it instead of storing NaN or a non-positive value.
    """
    number = coerce_number(value)
    if number is None or number <= 0:
        return None
    return number


def clean_amounts(values: Any) -> List[float]:
    """Keep only the valid parcel amounts of a sequence, in order."""
    if values is None or isinstance(values, (str, bytes, Mapping)):
        return []
    try:
        items = list(values)
    except TypeError:
        return []
    out: List[float] = []
    for v in items:
        amount = parse_amount(v)
        if amount is not None:
            out.append(amount)
    return out


def _pick(raw: Mapping[str, Any], name: str, aliases: Mapping[str, str]) -> Any:
    value = raw.get(name)
    if value is None and name in aliases:
        value = raw.get(aliases[name])
    return value


def _scalar(value: Any) -> float:
    number = coerce_number(value)
    return 0.0 if number is None else number


# =============================================================================
# Core Data Models
# =============================================================================

@dataclass
class StaffEntry:
    """One staff member's figures for a given date."""
    id: str = field(default_factory=new_entry_id)
    staff_name: str = ""

    # Parcel lists
    agent_parcels: List[float] = field(default_factory=list)            # assigned to agents at start
    additional_balance_only: List[float] = field(default_factory=list)  # today's balance only
    additional_today_wins: List[float] = field(default_factory=list)    # belongs to tomorrow's opening

    # Reported scalars
    previous_balance: float = 0.0
    mail_amount: float = 0.0
    return_claims: float = 0.0
    actual_closing_balance: float = 0.0

    @classmethod
    def from_dict(cls, raw: Any) -> "StaffEntry":
        """Build a fully-populated entry from a possibly partial or legacy record."""
        if not isinstance(raw, Mapping):
            raw = {}

        entry_id = raw.get("id")
        entry_id = str(entry_id).strip() if entry_id is not None else ""
        name = raw.get("staffName")

        return cls(
            id=entry_id or new_entry_id(),
            staff_name="" if name is None else str(name),
            agent_parcels=clean_amounts(raw.get("agentParcels")),
            additional_balance_only=clean_amounts(
                _pick(raw, "additionalBalanceOnly", STAFF_FIELD_ALIASES)
            ),
            additional_today_wins=clean_amounts(raw.get("additionalTodayWins")),
            previous_balance=_scalar(raw.get("previousBalance")),
            mail_amount=_scalar(raw.get("mailAmount")),
            return_claims=_scalar(raw.get("returnClaims")),
            actual_closing_balance=_scalar(
                _pick(raw, "actualClosingBalance", STAFF_FIELD_ALIASES)
            ),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "staffName": self.staff_name,
            "agentParcels": list(self.agent_parcels),
            "additionalBalanceOnly": list(self.additional_balance_only),
            "additionalTodayWins": list(self.additional_today_wins),
            "previousBalance": self.previous_balance,
            "mailAmount": self.mail_amount,
            "returnClaims": self.return_claims,
            "actualClosingBalance": self.actual_closing_balance,
        }


def normalize_staff_entry(raw: Any) -> StaffEntry:
    return StaffEntry.from_dict(raw)


def new_staff_entry(staff_name: str = "") -> StaffEntry:
    return StaffEntry(staff_name=staff_name)


@dataclass
class DailyClaim:
    """
    One record per calendar date.
    An absent date reads as "no claim" (no target, no staff), never as an error.
    """
    date: str
    target_amount: float = 0.0
    staff_entries: List[StaffEntry] = field(default_factory=list)
    updated_at: Optional[str] = None

    @classmethod
    def from_dict(cls, raw: Any, date: Optional[str] = None) -> "DailyClaim":
        if not isinstance(raw, Mapping):
            raw = {}

        claim_date = date or raw.get("date") or ""
        entries: List[StaffEntry] = []
        seen_ids = set()
        raw_entries = raw.get("staffEntries")
        if isinstance(raw_entries, Iterable) and not isinstance(raw_entries, (str, bytes, Mapping)):
            for item in raw_entries:
                entry = StaffEntry.from_dict(item)
                # ids stay unique within one claim
                while entry.id in seen_ids:
                    entry.id = new_entry_id()
                seen_ids.add(entry.id)
                entries.append(entry)

        updated_at = raw.get("updatedAt")
        return cls(
            date=str(claim_date),
            target_amount=_scalar(_pick(raw, "targetAmount", CLAIM_FIELD_ALIASES)),
            staff_entries=entries,
            updated_at=str(updated_at) if updated_at else None,
        )

    @classmethod
    def empty(cls, date: str) -> "DailyClaim":
        return cls(date=date)

    def entry_by_id(self, entry_id: str) -> Optional[StaffEntry]:
        for entry in self.staff_entries:
            if entry.id == entry_id:
                return entry
        return None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "date": self.date,
            "targetAmount": self.target_amount,
            "staffEntries": [e.to_dict() for e in self.staff_entries],
        }
        if self.updated_at:
            out["updatedAt"] = self.updated_at
        return out


# =============================================================================
# Derived figures
# =============================================================================

@dataclass(frozen=True)
class StaffTotals:
    """Reconciliation figures for one staff entry"""
    agent_sum: float
    extra_sum: float
    today_sum: float
    wins_for_balance: float      # agent + extra + today
    predicted_closing: float     # previous + wins - mail - returns
    balance_diff: float          # actual closing - predicted closing
    assigned_scanned: float      # back-solved from the actual closing balance
    is_reconciled: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "agentSum": self.agent_sum,
            "extraSum": self.extra_sum,
            "todaySum": self.today_sum,
            "winsForBalance": self.wins_for_balance,
            "predictedClosing": self.predicted_closing,
            "balanceDiff": self.balance_diff,
            "assignedScanned": self.assigned_scanned,
            "isReconciled": self.is_reconciled,
        }


@dataclass(frozen=True)
class DailySummary:
    """The day's verdict: total assigned-scanned vs. the admin target"""
    date: str
    target_amount: float
    total_assigned_scanned: float
    difference: float
    is_balanced: bool
    status: BalanceStatus
    staff_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date,
            "targetAmount": self.target_amount,
            "totalAssignedScanned": self.total_assigned_scanned,
            "difference": self.difference,
            "isBalanced": self.is_balanced,
            "status": self.status.value,
            "staffCount": self.staff_count,
        }
