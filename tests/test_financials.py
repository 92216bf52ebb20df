import pytest
from models.financials import (
    compute_snapshot,
    sale_profit,
    simulate_raw,
    simulate_clamped,
    cumulative_series,
    projection_series,
    capital_split,
    projection_summary,
    MAX_PROJECTION_STEPS,
)

CFG = {"investmentUsd": 1000, "exchangeRate": 20, "totalPieces": 100, "additionalExpensesUsd": 0, "targetMultiplier": 2}

def _sale(price, cost=0.0):
    return {"id": "x", "date": "2025-09-01", "price": price, "method": "Cash", "client": "", "realCostAtSale": cost}

def test_empty_log():
    snap = compute_snapshot(CFG, [])
    assert snap["totalInvestmentUsd"] == 1000
    assert snap["totalInvestmentSecondary"] == 20000
    assert snap["dynamicCostPerPieceUsd"] == 10
    assert snap["isROIReached"] is False
    assert snap["recoveryProgress"] == 0
    assert snap["averageMarginUsd"] == 0
    assert snap["remainingPieces"] == 100

def test_exact_recovery():
    snap = compute_snapshot(CFG, [_sale(1000)])
    assert snap["capitalRecoveredUsd"] == 1000
    assert snap["remainingInvestmentUsd"] == 0
    assert snap["isROIReached"] is True
    assert snap["netProfitUsd"] == 0
    assert snap["dynamicCostPerPieceUsd"] == 0

def test_profit_past_recovery():
    snap = compute_snapshot(CFG, [_sale(1500)])
    assert snap["netProfitUsd"] == 500
    assert snap["recoveryProgress"] == 100
    assert snap["progressToTarget"] == 75
    assert snap["averageMarginUsd"] == 1490

def test_zero_pieces_gives_none_not_inf():
    cfg = dict(CFG, totalPieces=0)
    snap = compute_snapshot(cfg, [])
    assert snap["initialCostPerPieceUsd"] is None
    assert snap["dynamicCostPerPieceUsd"] == 0
    assert snap["averageMarginUsd"] == 0
    # rest of the snapshot is intact
    assert snap["totalInvestmentUsd"] == 1000
    assert snap["progressToTarget"] == 0
    snap = compute_snapshot(cfg, [_sale(10)])
    assert snap["averageMarginUsd"] is None

def test_zero_investment_and_multiplier():
    snap = compute_snapshot(dict(CFG, investmentUsd=0), [])
    assert snap["recoveryProgress"] is None
    assert snap["progressToTarget"] is None
    assert snap["isROIReached"] is True
    snap = compute_snapshot(dict(CFG, targetMultiplier=0), [_sale(5)])
    assert snap["progressToTarget"] is None
    assert snap["recoveryProgress"] == pytest.approx(0.5)

def test_additional_expenses_join_investment():
    snap = compute_snapshot(dict(CFG, additionalExpensesUsd=250), [_sale(100)])
    assert snap["totalInvestmentUsd"] == 1250
    assert snap["remainingInvestmentUsd"] == 1150
    assert snap["dynamicCostPerPieceUsd"] == pytest.approx(1150 / 99)
    assert snap["targetRevenueUsd"] == 2500

def test_oversold_is_not_an_error():
    cfg = dict(CFG, totalPieces=2)
    snap = compute_snapshot(cfg, [_sale(100), _sale(100), _sale(100)])
    assert snap["remainingPieces"] == -1
    assert snap["dynamicCostPerPieceUsd"] == 0
    assert snap["remainingInvestmentUsd"] == 700

def test_invariants_hold_while_sales_accumulate():
    sales = []
    last_progress = 0.0
    for price in [3.5, 120, 0, 400, 77.25, 600, 12]:
        sales.append(_sale(price))
        snap = compute_snapshot(CFG, sales)
        assert snap["capitalRecoveredUsd"] + snap["remainingInvestmentUsd"] == pytest.approx(snap["totalInvestmentUsd"])
        assert snap["isROIReached"] == (snap["totalRevenueUsd"] >= snap["totalInvestmentUsd"])
        assert snap["netProfitUsd"] == max(0, snap["totalRevenueUsd"] - snap["totalInvestmentUsd"])
        assert last_progress <= snap["recoveryProgress"] <= 100
        last_progress = snap["recoveryProgress"]

def test_pure_and_idempotent():
    sales = [_sale(10), _sale(20)]
    cfg = dict(CFG)
    first = compute_snapshot(cfg, sales)
    assert compute_snapshot(cfg, sales) == first
    assert cfg == CFG
    assert sales == [_sale(10), _sale(20)]

def test_sale_profit_floors_at_zero():
    assert sale_profit(_sale(15, cost=10)) == 5
    assert sale_profit(_sale(8, cost=10)) == 0

def test_simulation_variants():
    snap = compute_snapshot(CFG, [_sale(100)])
    raw = simulate_raw(CFG, snap, 5)
    # 100 + 99 * 5 = 595
    assert raw["projectedTotalRevenue"] == 595
    assert raw["projectedNetProfit"] == -405
    assert raw["meetsTarget"] is False
    assert raw["profitPerPiece"] == 0
    clamped = simulate_clamped(CFG, snap, 5)
    assert clamped["projectedNetProfit"] == 0
    assert clamped["clamped"] is True

    hit = simulate_raw(CFG, snap, 20)
    assert hit["projectedTotalRevenue"] == 2080
    assert hit["meetsTarget"] is True
    assert hit["profitPerPiece"] == pytest.approx(20 - 900 / 99)

def test_simulation_rejects_negative_price():
    with pytest.raises(ValueError):
        simulate_raw(CFG, compute_snapshot(CFG, []), -1)

def test_cumulative_series():
    pts = cumulative_series(CFG, [_sale(600), _sale(600)], factor=2)
    assert [p["label"] for p in pts] == ["Sale 1", "Sale 2"]
    assert pts[1]["revenue"] == 2400
    assert pts[1]["goal"] == 2000
    assert pts[0]["profit"] == 0
    assert pts[1]["profit"] == 400

def test_projection_series():
    snap = compute_snapshot(dict(CFG, totalPieces=7), [_sale(10), _sale(30)])
    pts = projection_series(snap, [_sale(10), _sale(30)], steps=4)
    assert pts[1] == {"label": "2", "actual": 40, "projected": 40}
    assert [p["label"] for p in pts[2:]] == ["+2", "+4", "+5", "+5"]
    assert pts[-1]["projected"] == 40 + 5 * 20

    empty = compute_snapshot(CFG, [])
    pts = projection_series(empty, [])
    assert pts[0] == {"label": "0", "actual": 0.0, "projected": 0.0}
    assert pts[-1]["projected"] == 100 * 10

def test_capital_split():
    split = capital_split(compute_snapshot(CFG, [_sale(1200)]))
    assert [s["value"] for s in split] == [1000, 200]

def test_simulation_rejects_non_finite_price():
    snap = compute_snapshot(CFG, [])
    for bad in (float("nan"), float("inf")):
        with pytest.raises(ValueError):
            simulate_clamped(CFG, snap, bad)

def test_simulation_margin_percent():
    snap = compute_snapshot(CFG, [_sale(100)])
    hit = simulate_raw(CFG, snap, 20)
    assert hit["marginPercent"] == pytest.approx(1080 / 2080 * 100)
    assert simulate_raw(CFG, compute_snapshot(dict(CFG, totalPieces=0), []), 5)["marginPercent"] is None

def test_simulation_oversold_uses_negative_remaining():
    cfg = dict(CFG, totalPieces=1)
    snap = compute_snapshot(cfg, [_sale(100), _sale(100)])
    assert simulate_raw(cfg, snap, 10)["projectedTotalRevenue"] == 190

def test_projection_summary():
    sales = [_sale(30), _sale(10)]
    out = projection_summary(compute_snapshot(CFG, sales))
    assert out["averagePriceUsd"] == 20
    # 98 pieces left, 10 over the initial cost each
    assert out["estimatedFinalNetProfitUsd"] == 980
    assert out["projectedMultiple"] == pytest.approx((40 + 98 * 20) / 1000)

    empty = projection_summary(compute_snapshot(CFG, []))
    assert empty["estimatedFinalNetProfitUsd"] == 0
    assert empty["projectedMultiple"] == 1

def test_projection_summary_degenerate():
    out = projection_summary(compute_snapshot(dict(CFG, totalPieces=0), []))
    assert out["averagePriceUsd"] is None
    assert out["estimatedFinalNetProfitUsd"] is None
    assert out["projectedMultiple"] is None
    out = projection_summary(compute_snapshot(dict(CFG, investmentUsd=0), [_sale(5)]))
    assert out["projectedMultiple"] is None

def test_projection_steps_are_bounded():
    snap = compute_snapshot(dict(CFG, totalPieces=3), [])
    with pytest.raises(ValueError):
        projection_series(snap, [], steps=MAX_PROJECTION_STEPS + 1)
    pts = projection_series(snap, [], steps=MAX_PROJECTION_STEPS)
    assert [p["label"] for p in pts[1:]] == ["+1", "+2", "+3"]
