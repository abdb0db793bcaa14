from __future__ import annotations

import argparse
import io
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

from .engine import (
    build_daily_view,
    local_today,
    parse_claim_date,
    previous_day,
    resolve_carry_forward,
)
from .exceptions import StorageError
from .models import DailyClaim
from .outputs import output_filename, write_claim_xlsx
from .settings import DEFAULT_SETTINGS, ClaimsSettings, configure_logging
from .store import ClaimStore

logger = logging.getLogger(__name__)


def daily_view(settings: ClaimsSettings, day: str) -> dict:
    store = ClaimStore(settings.data_dir)
    claim = store.load_claim(day) or DailyClaim.empty(day)
    carry = resolve_carry_forward(day, store.load_claim)
    return build_daily_view(claim, carry, settings.balance_tolerance)


def run(mode: str, day: str, out: Optional[str], settings: ClaimsSettings) -> int:
    if mode == "carry-forward":
        store = ClaimStore(settings.data_dir)
        carry = resolve_carry_forward(day, store.load_claim)
        print(json.dumps({"date": day, "previousDate": previous_day(day), "carryForward": carry}, indent=2))
        return 0

    view = daily_view(settings, day)
    if mode == "view":
        print(json.dumps(view, indent=2))
        return 0

    out_path = Path(out) if out else Path(settings.data_dir) / "reports" / output_filename(day)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    bio = io.BytesIO()
    write_claim_xlsx(bio, view)
    out_path.write_bytes(bio.getvalue())
    logger.info(f"Wrote: {out_path}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    ap = argparse.ArgumentParser(prog="claims-recon")
    ap.add_argument("--mode", choices=["view", "carry-forward", "export"], default="view")
    ap.add_argument("--date", help="YYYY-MM-DD, defaults to today")
    ap.add_argument("--out", help="export path (xlsx)")
    ap.add_argument("--data-dir", help="overrides CLAIMS_DATA_DIR")
    args = ap.parse_args(argv)

    settings = DEFAULT_SETTINGS
    if args.data_dir:
        settings = replace(settings, data_dir=args.data_dir)
    configure_logging(settings.log_level)

    if args.date:
        d = parse_claim_date(args.date)
        if d is None:
            ap.error(f"invalid date: {args.date}")
    else:
        d = local_today(settings.timezone)

    try:
        return run(args.mode, d.isoformat(), args.out, settings)
    except StorageError as e:
        logger.error(f"[ERROR] {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
