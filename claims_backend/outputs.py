"""
Output Formatting

Generates the daily claims workbook:
- Summary sheet with the day's verdict against the admin target
- Staff sheet with the derived figures of every staff entry
- Carry Forward sheet with the previous day's wins brought forward
"""
from __future__ import annotations

import io
from pathlib import Path
from typing import Any, Dict

from openpyxl import Workbook
from openpyxl.styles import Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from .engine import staff_frame
from .models import BalanceStatus


# =============================================================================
# Style Constants
# =============================================================================

HEADER_FILL = PatternFill(start_color="366092", end_color="366092", fill_type="solid")
HEADER_FONT = Font(bold=True, color="FFFFFF")

GREEN_FILL = PatternFill(start_color="C6EFCE", end_color="C6EFCE", fill_type="solid")
GREY_FILL = PatternFill(start_color="EDEDED", end_color="EDEDED", fill_type="solid")
RED_FILL = PatternFill(start_color="FFC7CE", end_color="FFC7CE", fill_type="solid")

THIN_BORDER = Border(
    left=Side(style='thin'),
    right=Side(style='thin'),
    top=Side(style='thin'),
    bottom=Side(style='thin')
)

CURRENCY_FORMAT = '_("$"* #,##0.00_);_("$"* (#,##0.00);_("$"* "-"??_);_(@_)'

STATUS_LABELS = {
    BalanceStatus.BALANCED.value: "BALANCED",
    BalanceStatus.MISMATCH.value: "MISMATCH",
    BalanceStatus.NO_TARGET.value: "TARGET NOT SET",
}

STAFF_HEADERS = [
    ("staff_name", "Staff"),
    ("previous_balance", "Previous Balance"),
    ("agent_sum", "Agent Parcels"),
    ("extra_sum", "Balance Only"),
    ("today_sum", "Today Wins"),
    ("wins_for_balance", "Wins For Balance"),
    ("mail_amount", "Mail"),
    ("return_claims", "Returns"),
    ("predicted_closing", "Predicted Closing"),
    ("actual_closing_balance", "Actual Closing"),
    ("balance_diff", "Difference"),
    ("assigned_scanned", "Assigned Scanned"),
    ("reconciled", "Reconciled"),
]


def get_status_fill(status: str) -> PatternFill:
    """Get fill color for status"""
    if status == BalanceStatus.BALANCED.value:
        return GREEN_FILL
    elif status == BalanceStatus.MISMATCH.value:
        return RED_FILL
    else:
        return GREY_FILL


# =============================================================================
# Main Output Function
# =============================================================================

def write_claim_xlsx(output: io.BytesIO | Path, view: Dict[str, Any]) -> None:
    """
    Write a daily view (see engine.build_daily_view) to Excel.

    Sheets:
    - Summary: target vs total assigned-scanned
    - Staff: one row per staff entry
    - Carry Forward: previous day's today-wins per staff name
    """
    wb = Workbook()
    wb.remove(wb.active)

    _create_summary_sheet(wb, view)
    _create_staff_sheet(wb, view)
    _create_carry_forward_sheet(wb, view)

    if isinstance(output, io.BytesIO):
        wb.save(output)
        output.seek(0)
    else:
        wb.save(str(output))


def output_filename(date_str: str) -> str:
    return f"daily_claims_{date_str}.xlsx"


# =============================================================================
# Summary Sheet
# =============================================================================

def _create_summary_sheet(wb: Workbook, view: Dict[str, Any]):
    ws = wb.create_sheet("Summary")
    summary = view.get("summary", {})

    ws["A1"] = "Daily Claims Reconciliation"
    ws["A1"].font = Font(bold=True, size=14)
    ws["A2"] = f"Date: {view.get('date', '')}"

    rows = [
        ("Target Amount:", summary.get("targetAmount", 0)),
        ("Total Assigned Scanned:", summary.get("totalAssignedScanned", 0)),
        ("Difference:", summary.get("difference", 0)),
    ]
    row = 4
    for label, value in rows:
        ws[f"A{row}"] = label
        ws[f"B{row}"] = value
        ws[f"B{row}"].number_format = CURRENCY_FORMAT
        row += 1

    status = summary.get("status", BalanceStatus.NO_TARGET.value)
    ws[f"A{row}"] = "Status:"
    ws[f"B{row}"] = STATUS_LABELS.get(status, status.upper())
    ws[f"B{row}"].fill = get_status_fill(status)
    row += 1
    ws[f"A{row}"] = "Staff Count:"
    ws[f"B{row}"] = summary.get("staffCount", 0)

    _auto_width(ws)


# =============================================================================
# Staff Sheet
# =============================================================================

def _create_staff_sheet(wb: Workbook, view: Dict[str, Any]):
    ws = wb.create_sheet("Staff")
    df = staff_frame(view)

    row = 1
    for col, (_, header) in enumerate(STAFF_HEADERS, 1):
        cell = ws.cell(row=row, column=col, value=header)
        cell.fill = HEADER_FILL
        cell.font = HEADER_FONT
        cell.border = THIN_BORDER

    row += 1
    if df.empty:
        ws.cell(row=row, column=1, value="No staff entries")
    for record in df.to_dict(orient="records"):
        for col, (key, _) in enumerate(STAFF_HEADERS, 1):
            value = record[key]
            if key == "reconciled":
                cell = ws.cell(row=row, column=col, value="Yes" if value else "No")
                cell.fill = GREEN_FILL if value else RED_FILL
            elif key == "staff_name":
                cell = ws.cell(row=row, column=col, value=str(value))
            else:
                cell = ws.cell(row=row, column=col, value=float(value))
                cell.number_format = CURRENCY_FORMAT
            cell.border = THIN_BORDER
        row += 1

    _auto_width(ws)


# =============================================================================
# Carry Forward Sheet
# =============================================================================

def _create_carry_forward_sheet(wb: Workbook, view: Dict[str, Any]):
    ws = wb.create_sheet("Carry Forward")

    ws["A1"] = "Wins Brought Forward"
    ws["A1"].font = Font(bold=True, size=14)
    ws["A2"] = f"From: {view.get('previousDate') or 'n/a'}"

    row = 4
    for col, header in enumerate(["Staff", "Amount"], 1):
        cell = ws.cell(row=row, column=col, value=header)
        cell.fill = HEADER_FILL
        cell.font = HEADER_FONT
        cell.border = THIN_BORDER

    row += 1
    carry = view.get("carryForward", {})
    if not carry:
        ws.cell(row=row, column=1, value="Nothing brought forward")
    for name, amount in carry.items():
        ws.cell(row=row, column=1, value=name).border = THIN_BORDER
        cell = ws.cell(row=row, column=2, value=amount)
        cell.number_format = CURRENCY_FORMAT
        cell.border = THIN_BORDER
        row += 1

    _auto_width(ws)


# =============================================================================
# Helpers
# =============================================================================

def _auto_width(ws):
    """Auto-adjust column widths"""
    for column in ws.columns:
        max_length = 0
        column_letter = get_column_letter(column[0].column)

        for cell in column:
            if cell.value is not None:
                max_length = max(max_length, len(str(cell.value)))

        ws.column_dimensions[column_letter].width = min(max_length + 2, 50)
