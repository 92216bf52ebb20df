import logging
import uuid
from datetime import date, datetime
from typing import List, Dict, Optional
from utils.file_manager import read_json, write_json, locked
from utils.currency import BASE, to_base
from models.financials import compute_snapshot

LOG = logging.getLogger(__name__)

def _sales() -> List[Dict]:
    return read_json("sales.json")

def _save_sales(s):
    write_json("sales.json", s)

def record_sale(config: Dict, sales: List[Dict], amount: float, currency: str = BASE,
                date_iso: Optional[str] = None, method: str = "Cash", client: str = "") -> Dict:
    """Append a new sale to ``sales`` and return it.

    The amount is converted to base currency at the config's current rate and
    the sale is stamped with the dynamic cost per piece as it stood just
    before this sale.
    """
    price = to_base(amount, config["exchangeRate"], currency)
    if price < 0:
        raise ValueError("Sale price must not be negative")
    if date_iso:
        try:
            date_iso = datetime.fromisoformat(date_iso).date().isoformat()
        except ValueError:
            raise ValueError(f"Invalid sale date: {date_iso!r} (expected YYYY-MM-DD)")
    else:
        date_iso = date.today().isoformat()

    cost_before = compute_snapshot(config, sales)["dynamicCostPerPieceUsd"]
    sale = {
        "id": str(uuid.uuid4()),
        "date": date_iso,
        "price": round(price, 4),
        "method": method or "Cash",
        "client": client or "",
        "realCostAtSale": round(cost_before, 4),
    }
    sales.append(sale)
    return sale

def all_sales() -> List[Dict]:
    return _sales()

def add_sale(config: Dict, amount: float, **meta) -> Dict:
    with locked():
        s = _sales()
        sale = record_sale(config, s, amount, **meta)
        _save_sales(s)
    LOG.info("recorded sale %s: %.4f on %s", sale["id"], sale["price"], sale["date"])
    return sale

def delete_sale(sale_id: str) -> Dict:
    with locked():
        s = _sales()
        for i, r in enumerate(s):
            if r.get("id") == sale_id:
                removed = s.pop(i)
                _save_sales(s)
                LOG.info("deleted sale %s", sale_id)
                return removed
    raise ValueError(f"Unknown sale: {sale_id}")

def clear_sales() -> int:
    with locked():
        count = len(_sales())
        _save_sales([])
    LOG.info("cleared %d sale(s)", count)
    return count

def sales_for_date(date_iso: str) -> List[Dict]:
    return [r for r in _sales() if r.get("date") == date_iso]
