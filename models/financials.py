"""Pallet financial engine.

Pure functions over a pallet config dict and a list of sale dicts. Nothing
here reads or writes files; callers load state and pass it in.
"""
import math
from typing import Dict, List, Optional

from utils.currency import finite

MAX_PROJECTION_STEPS = 50


def _ratio(num: float, den: float) -> Optional[float]:
    # None instead of inf/nan for degenerate configs
    if den == 0:
        return None
    return num / den


def compute_snapshot(config: Dict, sales: List[Dict]) -> Dict:
    total_investment = float(config["investmentUsd"]) + float(config["additionalExpensesUsd"])
    total_investment_secondary = total_investment * float(config["exchangeRate"])

    total_revenue = sum(float(s["price"]) for s in sales)
    pieces_sold = len(sales)
    remaining_pieces = int(config["totalPieces"]) - pieces_sold

    capital_recovered = min(total_revenue, total_investment)
    remaining_investment = max(0.0, total_investment - total_revenue)

    # break-even price for every piece still in stock
    dynamic_cost = remaining_investment / remaining_pieces if remaining_pieces > 0 else 0.0

    net_profit = max(0.0, total_revenue - total_investment)

    recovery_progress = _ratio(capital_recovered, total_investment)
    if recovery_progress is not None:
        recovery_progress *= 100

    initial_cost = _ratio(total_investment, int(config["totalPieces"]))

    if pieces_sold == 0:
        average_margin = 0.0
    elif initial_cost is None:
        average_margin = None
    else:
        average_margin = total_revenue / pieces_sold - initial_cost

    target_revenue = total_investment * float(config["targetMultiplier"])
    progress_to_target = _ratio(total_revenue, target_revenue)
    if progress_to_target is not None:
        progress_to_target *= 100

    return {
        "totalInvestmentUsd": total_investment,
        "totalInvestmentSecondary": total_investment_secondary,
        "totalRevenueUsd": total_revenue,
        "piecesSold": pieces_sold,
        "remainingPieces": remaining_pieces,
        "capitalRecoveredUsd": capital_recovered,
        "remainingInvestmentUsd": remaining_investment,
        "dynamicCostPerPieceUsd": dynamic_cost,
        "netProfitUsd": net_profit,
        "recoveryProgress": recovery_progress,
        "initialCostPerPieceUsd": initial_cost,
        "averageMarginUsd": average_margin,
        "targetRevenueUsd": target_revenue,
        "progressToTarget": progress_to_target,
        "isROIReached": total_revenue >= total_investment,
    }


def sale_profit(sale: Dict) -> float:
    """Realized profit of a single sale against its recorded cost."""
    return max(0.0, float(sale["price"]) - float(sale["realCostAtSale"]))


# -------- Simulator --------

def simulate_sale(config: Dict, snapshot: Dict, price_usd: float, clamp_profit: bool = False) -> Dict:
    """What-if: sell every remaining piece at ``price_usd``.

    ``config`` is accepted for symmetry with ``compute_snapshot``; all the
    figures needed are already on the snapshot. An oversold lot has a
    negative remaining count, which lowers the projection.
    """
    price = finite(price_usd, "Simulated price")
    if price < 0:
        raise ValueError("Simulated price must not be negative")
    projected_revenue = snapshot["totalRevenueUsd"] + snapshot["remainingPieces"] * price
    projected_profit = projected_revenue - snapshot["totalInvestmentUsd"]
    if clamp_profit:
        projected_profit = max(0.0, projected_profit)
    margin = _ratio(projected_profit, projected_revenue)
    return {
        "priceUsd": price,
        "profitPerPiece": max(0.0, price - snapshot["dynamicCostPerPieceUsd"]),
        "projectedTotalRevenue": projected_revenue,
        "projectedNetProfit": projected_profit,
        "meetsTarget": projected_revenue >= snapshot["targetRevenueUsd"],
        "marginPercent": None if margin is None else margin * 100,
        "clamped": bool(clamp_profit),
    }


def simulate_raw(config: Dict, snapshot: Dict, price_usd: float) -> Dict:
    return simulate_sale(config, snapshot, price_usd, clamp_profit=False)


def simulate_clamped(config: Dict, snapshot: Dict, price_usd: float) -> Dict:
    return simulate_sale(config, snapshot, price_usd, clamp_profit=True)


def _average_price(snapshot: Dict) -> Optional[float]:
    # average sale so far, or the initial cost per piece before the first sale
    if snapshot["piecesSold"]:
        return snapshot["totalRevenueUsd"] / snapshot["piecesSold"]
    return snapshot["initialCostPerPieceUsd"]


def projection_summary(snapshot: Dict) -> Dict:
    """Where the lot ends up if the remaining pieces sell at the current average price.

    ``estimatedFinalNetProfitUsd`` adds the expected margin of every remaining
    piece over its initial cost to the profit already made;
    ``projectedMultiple`` is final revenue over total investment.
    """
    average_price = _average_price(snapshot)
    initial_cost = snapshot["initialCostPerPieceUsd"]
    remaining = snapshot["remainingPieces"]
    if average_price is None or initial_cost is None:
        final_profit = None
    else:
        final_profit = snapshot["netProfitUsd"] + remaining * (average_price - initial_cost)
    if average_price is None:
        multiple = None
    else:
        multiple = _ratio(snapshot["totalRevenueUsd"] + remaining * average_price, snapshot["totalInvestmentUsd"])
    return {
        "averagePriceUsd": average_price,
        "estimatedFinalNetProfitUsd": final_profit,
        "projectedMultiple": multiple,
    }


# -------- Chart series --------

def cumulative_series(config: Dict, sales: List[Dict], factor: float = 1.0) -> List[Dict]:
    """Running revenue against the investment goal, one point per sale."""
    goal = float(config["investmentUsd"]) + float(config["additionalExpensesUsd"])
    points = []
    cumulative = 0.0
    for i, s in enumerate(sales, start=1):
        cumulative += float(s["price"])
        points.append({
            "label": f"Sale {i}",
            "revenue": cumulative * factor,
            "goal": goal * factor,
            "profit": max(0.0, cumulative - goal) * factor,
        })
    return points


def projection_series(snapshot: Dict, sales: List[Dict], steps: int = 4, factor: float = 1.0) -> List[Dict]:
    """Actual cumulative revenue followed by a projection of the remaining
    pieces sold at the current average price."""
    if not 1 <= steps <= MAX_PROJECTION_STEPS:
        raise ValueError(f"steps must be between 1 and {MAX_PROJECTION_STEPS}")
    points = []
    cumulative = 0.0
    for i, s in enumerate(sales, start=1):
        cumulative += float(s["price"])
        points.append({"label": str(i), "actual": cumulative * factor, "projected": None})

    if points:
        points[-1]["projected"] = points[-1]["actual"]
    else:
        points.append({"label": "0", "actual": 0.0, "projected": 0.0})

    average_price = _average_price(snapshot) or 0.0
    remaining = snapshot["remainingPieces"]
    if remaining > 0:
        steps = min(steps, remaining)
        step_size = math.ceil(remaining / steps)
        for i in range(1, steps + 1):
            count = remaining if i == steps else min(i * step_size, remaining)
            points.append({
                "label": f"+{count}",
                "actual": None,
                "projected": (snapshot["totalRevenueUsd"] + count * average_price) * factor,
            })
    return points


def capital_split(snapshot: Dict, factor: float = 1.0) -> List[Dict]:
    return [
        {"name": "Capital reinvestment", "value": snapshot["capitalRecoveredUsd"] * factor},
        {"name": "Free profit", "value": snapshot["netProfitUsd"] * factor},
    ]
