"""
Local MCP server for the pallet profit tracker.

This exposes the tracker through FastMCP so an LLM client can read the
financial snapshot, browse and edit the sales log, run the price simulator
and export the spreadsheet report.

Every tool reads and writes the same JSON files in `data/` as the Flask
app, and returns MCP-compliant content arrays.
"""
import json
import logging
from typing import Any, Dict

from fastmcp import FastMCP

from utils.file_manager import default_for, write_json
from utils.currency import to_base
from models.pallet import get_config, get_settings, update_config as _update_config
from models.sales import all_sales, add_sale as _add_sale, delete_sale as _delete_sale, clear_sales
from models.financials import compute_snapshot, sale_profit, simulate_sale, projection_summary
from reports import export_report as _export_report

LOG = logging.getLogger(__name__)
logging.basicConfig(level=logging.INFO)

server_instructions = """
This MCP server manages a reseller's pallet: the purchase config, the log of
individual sales, and the derived recovery/profit metrics. Amounts are stored
in the base currency; tools that take a price accept a "currency" of "base"
or "secondary".
"""

def _content(payload: Dict[str, Any]) -> Dict[str, Any]:
    return {"content": [{"type": "text", "text": json.dumps(payload)}]}

def _parse(arg: str):
    """Decode a tool argument; None unless it is empty or a JSON object."""
    try:
        data = json.loads(arg) if arg else {}
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None

def create_server() -> FastMCP:
    mcp = FastMCP(name="Pallet Tracker Local MCP", instructions=server_instructions)

    @mcp.tool()
    async def snapshot() -> Dict[str, Any]:
        """
        Return the current pallet config and its financial snapshot.

        The snapshot holds invested capital, revenue, capital recovered,
        remaining investment, the dynamic break-even cost per remaining
        piece, net profit, progress percentages and the `isROIReached`
        phase flag. Ratio fields are null when the config makes them
        undefined (zero pieces, zero investment, zero multiplier).
        """
        cfg = get_config()
        snap = compute_snapshot(cfg, all_sales())
        return _content({"pallet": cfg, "snapshot": snap, "projection": projection_summary(snap)})

    @mcp.tool()
    async def sales_history() -> Dict[str, Any]:
        """
        Return every recorded sale in insertion order, each with its
        realized profit against the cost recorded at sale time.
        """
        sales = [{**s, "profit": sale_profit(s)} for s in all_sales()]
        return _content({"sales": sales})

    @mcp.tool()
    async def add_sale(arg: str) -> Dict[str, Any]:
        """
        Record a sale.

        `arg` is a JSON object: {"price": 350, "currency": "secondary",
        "date": "2025-01-31", "method": "Cash", "client": "Ana"}. Only
        `price` is required; currency defaults to the configured display
        currency and date to today.
        """
        data = _parse(arg)
        if data is None:
            return _content({"error": "Invalid JSON argument"})
        if data.get("price") is None:
            return _content({"error": "Provide a sale 'price'"})
        settings = get_settings()
        try:
            sale = _add_sale(
                get_config(),
                float(data["price"]),
                currency=data.get("currency") or settings["display_currency"],
                date_iso=data.get("date"),
                method=data.get("method") or settings["default_method"],
                client=data.get("client", ""),
            )
        except (TypeError, ValueError) as e:
            return _content({"error": str(e)})
        return _content({"sale": sale})

    @mcp.tool()
    async def delete_sale(arg: str) -> Dict[str, Any]:
        """
        Delete one sale. `arg` is {"id": "<sale id>"}.
        """
        data = _parse(arg)
        if data is None:
            return _content({"error": "Invalid JSON argument"})
        try:
            removed = _delete_sale(data.get("id"))
        except ValueError as e:
            return _content({"error": str(e)})
        return _content({"deleted": removed})

    @mcp.tool()
    async def simulate(arg: str) -> Dict[str, Any]:
        """
        What-if: sell all remaining pieces at one price.

        `arg` is {"price": 12.5, "currency": "base", "clamp": false}. With
        `clamp` true the projected net profit is floored at zero.
        """
        data = _parse(arg)
        if data is None:
            return _content({"error": "Invalid JSON argument"})
        cfg = get_config()
        try:
            currency = data.get("currency") or get_settings()["display_currency"]
            price = to_base(float(data.get("price", 0)), cfg["exchangeRate"], currency)
            result = simulate_sale(cfg, compute_snapshot(cfg, all_sales()), price, clamp_profit=bool(data.get("clamp", False)))
        except (TypeError, ValueError) as e:
            return _content({"error": str(e)})
        return _content({"simulation": result})

    @mcp.tool()
    async def update_config(arg: str) -> Dict[str, Any]:
        """
        Partially update the pallet config, e.g. {"exchangeRate": 18.2}.
        Invalid values are rejected and nothing is saved.
        """
        data = _parse(arg)
        if data is None:
            return _content({"error": "Invalid JSON argument"})
        try:
            return _content({"pallet": _update_config(data)})
        except ValueError as e:
            return _content({"error": str(e)})

    @mcp.tool()
    async def export_report() -> Dict[str, Any]:
        """
        Write the spreadsheet report (summary + sales ledger) into
        `data/reports/` and return its path.
        """
        return _content({"path": _export_report()})

    @mcp.tool()
    async def reset_tracker(reset_arg: str = None) -> Dict[str, Any]:
        """
        Clear the sales log, and the config too with {"reset_config": true}.
        This mirrors the `/reset` HTTP endpoint in the Flask app.
        """
        data = _parse(reset_arg)
        if data is None:
            return _content({"error": "Invalid JSON argument"})
        removed = clear_sales()
        if bool(data.get("reset_config", False)):
            write_json("config.json", default_for("config.json"))
        return _content({"ok": True, "removed": removed})

    return mcp


def main():
    server = create_server()
    LOG.info("Starting local MCP server on 0.0.0.0:8000 (HTTP)")
    server.run(transport="http", host="0.0.0.0", port=8000, path="/mcp")


if __name__ == "__main__":
    main()
