from __future__ import annotations

import io
import logging
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Header, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from .engine import (
    apply_edits,
    build_daily_view,
    local_today,
    parse_claim_date,
    previous_day,
    resolve_carry_forward,
)
from .exceptions import AdminSecretError, InvalidDateError, StorageError
from .models import DailyClaim
from .outputs import output_filename, write_claim_xlsx
from .settings import DEFAULT_SETTINGS, ClaimsSettings, configure_logging
from .store import AdminSecretStore, ClaimStore

logger = logging.getLogger(__name__)


# ============================================================================
# Request Models
# ============================================================================

class ClaimPayload(BaseModel):
    date: Optional[str] = None
    targetAmount: Optional[Any] = None
    totalAgentClaim: Optional[Any] = None  # legacy name of targetAmount
    staffEntries: List[Any] = Field(default_factory=list)


class AdminPasswordRequest(BaseModel):
    mode: str  # "verify" | "change"
    password: Optional[str] = None
    currentPassword: Optional[str] = None
    newPassword: Optional[str] = None


# ============================================================================
# Helper Functions
# ============================================================================

def _parse_iso_date(s: Optional[str]) -> str:
    if not s:
        raise HTTPException(status_code=400, detail="Date required")
    d = parse_claim_date(s)
    if d is None:
        raise HTTPException(status_code=400, detail=f"Invalid date: {s}")
    return d.isoformat()


def create_app(settings: Optional[ClaimsSettings] = None) -> FastAPI:
    settings = settings or DEFAULT_SETTINGS
    claims = ClaimStore(settings.data_dir)
    admin = AdminSecretStore(settings.data_dir)

    app = FastAPI(title="Daily Claims API", version="1.0")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.settings = settings
    app.state.claims = claims
    app.state.admin = admin

    def load_or_fail(date_str: str) -> Optional[DailyClaim]:
        try:
            return claims.load_claim(date_str)
        except StorageError as e:
            raise HTTPException(status_code=500, detail=str(e))

    def daily_view(date_str: Optional[str]) -> Dict:
        day = _parse_iso_date(date_str) if date_str else local_today(settings.timezone).isoformat()
        claim = load_or_fail(day) or DailyClaim.empty(day)
        carry = resolve_carry_forward(day, claims.load_claim)
        return build_daily_view(claim, carry, settings.balance_tolerance)

    # ========================================================================
    # API Endpoints
    # ========================================================================

    @app.on_event("startup")
    async def _startup():
        configure_logging(settings.log_level)
        logger.info(f"[OK] Claims data folder: {settings.data_dir}")

    @app.get("/health")
    def health():
        """Simple health check endpoint"""
        return {"ok": True, "status": "running"}

    @app.get("/claims")
    def get_claim(date: Optional[str] = None):
        """Load the raw claim for a date; claim is null when nothing was saved."""
        day = _parse_iso_date(date)
        claim = load_or_fail(day)
        return {"claim": claim.to_dict() if claim else None}

    @app.post("/claims")
    def save_claim(payload: ClaimPayload, x_admin_secret: Optional[str] = Header(default=None)):
        """
        Save the full record for a date.
        Without a valid X-Admin-Secret header the admin-only fields are kept as stored.
        """
        day = _parse_iso_date(payload.date)
        try:
            is_admin = admin.verify_secret(x_admin_secret)
        except StorageError as e:
            raise HTTPException(status_code=500, detail=str(e))

        submitted = DailyClaim.from_dict(payload.model_dump(), date=day)
        current = load_or_fail(day) or DailyClaim.empty(day)
        merged = apply_edits(current, submitted, is_admin)

        try:
            saved = claims.save_claim(merged)
        except (StorageError, InvalidDateError) as e:
            raise HTTPException(status_code=500, detail=str(e))
        return {"success": True, "admin": is_admin, "claim": saved.to_dict()}

    @app.get("/claims/dates")
    def get_claim_dates():
        """Dates that have a saved claim, oldest first"""
        return {"dates": claims.list_dates()}

    @app.get("/claims/view")
    def get_daily_view(date: Optional[str] = None):
        """Derived figures for every staff entry, the day's verdict and carry-forward."""
        return daily_view(date)

    @app.get("/claims/carry-forward")
    def get_carry_forward(date: Optional[str] = None):
        day = _parse_iso_date(date)
        return {
            "date": day,
            "previousDate": previous_day(day),
            "carryForward": resolve_carry_forward(day, claims.load_claim),
        }

    @app.get("/claims/export")
    def export_claim(date: Optional[str] = None):
        """Download the daily view as an Excel workbook"""
        view = daily_view(date)
        bio = io.BytesIO()
        write_claim_xlsx(bio, view)
        fname = output_filename(view["date"])
        return StreamingResponse(
            bio,
            media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            headers={"Content-Disposition": f'attachment; filename="{fname}"'},
        )

    # ========================================================================
    # Admin Password Endpoints
    # ========================================================================

    @app.get("/admin-password")
    def admin_password_status():
        """Whether an admin password has been set"""
        try:
            return {"hasPassword": admin.has_secret()}
        except StorageError as e:
            raise HTTPException(status_code=500, detail=str(e))

    @app.post("/admin-password")
    def admin_password(req: AdminPasswordRequest):
        """Verify the admin password, or set/change it."""
        try:
            if req.mode == "verify":
                if not req.password:
                    raise HTTPException(status_code=400, detail="Password required")
                return {"valid": admin.verify_secret(req.password)}

            if req.mode == "change":
                if not req.newPassword:
                    raise HTTPException(status_code=400, detail="New password required")
                try:
                    admin.change_secret(req.currentPassword, req.newPassword)
                except AdminSecretError as e:
                    raise HTTPException(status_code=403, detail=e.reason)
                return {"success": True}
        except StorageError as e:
            raise HTTPException(status_code=500, detail=str(e))

        raise HTTPException(status_code=400, detail="Invalid mode")

    return app


app = create_app()
