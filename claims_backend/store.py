"""
Storage collaborators for the reconciliation engine.

- ClaimStore keeps one JSON document per date (full overwrite on save)
- AdminSecretStore keeps the single shared admin secret, hashed

Neither knows anything about the reconciliation math; the engine only sees
DailyClaim values and a boolean "is admin" flag.
"""
from __future__ import annotations

import hashlib
import hmac
import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from .engine import parse_claim_date
from .exceptions import AdminSecretError, InvalidDateError, StorageError
from .models import DailyClaim

logger = logging.getLogger(__name__)

_PBKDF2_ROUNDS = 200_000


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _write_json(path: Path, data) -> None:
    """Write via a temp file so a failed write never leaves half a document."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    try:
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        os.replace(tmp, path)
    finally:
        if tmp.exists():
            tmp.unlink()


# ============================================================================
# Daily claims
# ============================================================================

class ClaimStore:
    """One JSON document per calendar date under <data_dir>/claims/."""

    def __init__(self, data_dir: str | Path):
        self.root = Path(data_dir) / "claims"

    def path_for(self, date_str: str) -> Path:
        d = parse_claim_date(date_str)
        if d is None:
            raise InvalidDateError(f"Invalid date: {date_str}")
        return self.root / f"{d.isoformat()}.json"

    def load_claim(self, date_str: str) -> Optional[DailyClaim]:
        """Return the claim for date_str, or None when nothing was saved for it."""
        path = self.path_for(date_str)
        if not path.exists():
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"[ERROR] Failed to load claim {path.name}: {e}")
            raise StorageError(f"Failed to fetch claims for {date_str}") from e

        if not isinstance(data, dict):
            raise StorageError(f"Stored claim for {date_str} is malformed")
        return DailyClaim.from_dict(data, date=path.stem)

    def save_claim(self, claim: DailyClaim) -> DailyClaim:
        """Overwrite the whole record for claim.date. Returns the saved copy."""
        path = self.path_for(claim.date)
        # round-trip through the normalizer so only valid amounts are persisted
        saved = DailyClaim.from_dict(claim.to_dict(), date=path.stem)
        saved.updated_at = _utc_now_iso()
        try:
            _write_json(path, saved.to_dict())
        except OSError as e:
            logger.error(f"[ERROR] Failed to save claim {path.name}: {e}")
            raise StorageError(f"Failed to save claims for {claim.date}") from e

        logger.info(f"[OK] Saved claim {saved.date} ({len(saved.staff_entries)} staff)")
        return saved

    def list_dates(self) -> list:
        if not self.root.exists():
            return []
        return sorted(p.stem for p in self.root.glob("*.json") if parse_claim_date(p.stem))


# ============================================================================
# Admin secret
# ============================================================================

class AdminSecretStore:
    """The single global admin secret, kept as a salted PBKDF2 hash."""

    def __init__(self, data_dir: str | Path):
        self.path = Path(data_dir) / "settings" / "admin.json"

    def _load(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"[ERROR] Failed to load admin settings: {e}")
            raise StorageError("Failed to load admin password status") from e
        return data if isinstance(data, dict) else {}

    @staticmethod
    def _hash(secret: str, salt: bytes) -> str:
        return hashlib.pbkdf2_hmac("sha256", secret.encode("utf-8"), salt, _PBKDF2_ROUNDS).hex()

    def has_secret(self) -> bool:
        return bool(self._load().get("secretHash"))

    def verify_secret(self, candidate: Optional[str]) -> bool:
        if not candidate:
            return False
        data = self._load()
        stored = data.get("secretHash")
        salt = data.get("salt")
        if not stored or not salt:
            return False
        return hmac.compare_digest(self._hash(candidate, bytes.fromhex(salt)), stored)

    def change_secret(self, current: Optional[str], new: Optional[str]) -> None:
        """Set or replace the secret. The current one must verify if one exists."""
        if not new:
            raise AdminSecretError("New password required")
        if self.has_secret() and not self.verify_secret(current):
            raise AdminSecretError("Current password incorrect")

        salt = os.urandom(16)
        try:
            _write_json(self.path, {
                "secretHash": self._hash(new, salt),
                "salt": salt.hex(),
                "updatedAt": _utc_now_iso(),
            })
        except OSError as e:
            logger.error(f"[ERROR] Failed to save admin settings: {e}")
            raise StorageError("Failed to process admin password request") from e
        logger.info("[OK] Admin password updated")
