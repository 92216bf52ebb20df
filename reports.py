"""Spreadsheet report: a summary sheet plus the per-sale ledger."""
import logging
import os
from datetime import date
from typing import Dict, List, Optional

from openpyxl import Workbook
from openpyxl.styles import Font

from utils.file_manager import reports_dir
from models.pallet import get_config, get_settings
from models.sales import all_sales
from models.financials import compute_snapshot, sale_profit

LOG = logging.getLogger(__name__)

LEDGER_HEADER = ["Date", "Client", "Payment method", "Sale price", "Cost at sale", "Profit"]

def summary_rows(config: Dict, snapshot: Dict, currencies: Dict[str, str]) -> List[List]:
    rate = float(config["exchangeRate"])
    base, secondary = currencies["base"], currencies["secondary"]

    def money(label, amount):
        return [label, amount, amount * rate]

    return [
        ["PALLET PROFIT TRACKER - GENERAL REPORT"],
        [],
        ["INVESTMENT", f"VALUE {base}", f"VALUE {secondary}"],
        money("Initial investment", float(config["investmentUsd"])),
        money("Additional expenses", float(config["additionalExpensesUsd"])),
        ["Total investment", snapshot["totalInvestmentUsd"], snapshot["totalInvestmentSecondary"]],
        ["Exchange rate", rate, 1.0],
        [],
        ["CURRENT STATUS", f"VALUE {base}", f"VALUE {secondary}"],
        money("Total sold", snapshot["totalRevenueUsd"]),
        money("Capital recovered", snapshot["capitalRecoveredUsd"]),
        money("Capital pending", snapshot["remainingInvestmentUsd"]),
        money("Net profit", snapshot["netProfitUsd"]),
        [],
        ["INVENTORY", "QUANTITY", "VALUE"],
        ["Initial pieces", int(config["totalPieces"]), None],
        ["Pieces sold", snapshot["piecesSold"], None],
        ["Pieces remaining", snapshot["remainingPieces"], None],
        money("Real cost per piece", snapshot["dynamicCostPerPieceUsd"]),
    ]

def ledger_rows(sales: List[Dict], base_code: str = "USD") -> List[List]:
    header = [h if i < 3 else f"{h} ({base_code})" for i, h in enumerate(LEDGER_HEADER)]
    rows = [header]
    for s in sales:
        rows.append([
            s["date"],
            s.get("client") or "General",
            s.get("method", ""),
            float(s["price"]),
            float(s["realCostAtSale"]),
            sale_profit(s),
        ])
    return rows

def build_workbook(config: Dict, sales: List[Dict], currencies: Dict[str, str]) -> Workbook:
    snapshot = compute_snapshot(config, sales)
    wb = Workbook()
    summary = wb.active
    summary.title = "Summary"
    for row in summary_rows(config, snapshot, currencies):
        summary.append(row)
    summary["A1"].font = Font(bold=True)

    ledger = wb.create_sheet("Sales")
    for row in ledger_rows(sales, currencies["base"]):
        ledger.append(row)
    for cell in ledger[1]:
        cell.font = Font(bold=True)
    return wb

def report_filename(day: Optional[date] = None) -> str:
    day = day or date.today()
    return f"pallet_report_{day.isoformat()}.xlsx"

def export_report(path: Optional[str] = None) -> str:
    """Write the report for the persisted config and sales; returns the file path."""
    settings = get_settings()
    wb = build_workbook(get_config(), all_sales(), settings["currencies"])
    path = path or os.path.join(reports_dir(), report_filename())
    wb.save(path)
    LOG.info("exported report to %s", path)
    return path
