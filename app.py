import io
import logging
from flask import Flask, jsonify, request, send_file
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from utils.file_manager import ensure_defaults, default_for, write_json
from utils.currency import to_base, to_display, display_factor, format_currency
from models.pallet import get_config, get_settings, apply_changes, SETTINGS_KEYS
from models.sales import all_sales, add_sale, delete_sale, clear_sales
from models.financials import (
    compute_snapshot,
    sale_profit,
    simulate_sale,
    cumulative_series,
    projection_series,
    capital_split,
    projection_summary,
)
from reports import build_workbook, export_report, report_filename

LOG = logging.getLogger(__name__)
logging.basicConfig(level=logging.INFO)

ensure_defaults()
app = Flask(__name__)

scheduler = BackgroundScheduler(daemon=True)
def _schedule_job():
    auto = get_settings()["autoexport"]
    for job in scheduler.get_jobs():
        scheduler.remove_job(job.id)
    if auto.get("enabled"):
        seconds = int(auto.get("interval_seconds", 3600))
        scheduler.add_job(export_report, trigger=IntervalTrigger(seconds=seconds), id="report_export", replace_existing=True)
        if not scheduler.running:
            scheduler.start()
        LOG.info("report export scheduled every %ds", seconds)

_schedule_job()

def _currency_arg() -> str:
    return request.args.get("currency") or get_settings()["display_currency"]

def _error(e, status=400):
    return jsonify({"ok": False, "error": str(e)}), status

@app.get("/status")
def status():
    jobs = scheduler.get_jobs()
    next_run = jobs[0].next_run_time.isoformat() if jobs and jobs[0].next_run_time else None
    return jsonify({
        "pallet": get_config(),
        "settings": get_settings(),
        "scheduler_running": scheduler.running,
        "next_export_time": next_run
    })

# -------- Config --------
@app.get("/config")
def config_get():
    return jsonify({"ok": True, "pallet": get_config(), "settings": get_settings()})

@app.post("/config")
def config_update():
    data = request.get_json(force=True, silent=True) or {}
    if not isinstance(data, dict):
        return _error("body must be a JSON object")
    pallet = data.get("pallet")
    if pallet is not None and not isinstance(pallet, dict):
        return _error("'pallet' must be an object")
    settings = {k: v for k, v in data.items() if k in SETTINGS_KEYS}
    try:
        saved = apply_changes(pallet=pallet, settings=settings)
    except ValueError as e:
        return _error(e)
    changed = {k: saved["settings"][k] for k in settings}
    if pallet is not None:
        changed["pallet"] = saved["pallet"]
    if "autoexport" in changed:
        _schedule_job()
    return jsonify({"ok": True, "changed": changed, "pallet": get_config(), "settings": get_settings()})

# -------- Snapshot --------
@app.get("/snapshot")
def snapshot_get():
    cfg = get_config()
    snap = compute_snapshot(cfg, all_sales())
    currency = _currency_arg()
    money = ("totalRevenueUsd", "capitalRecoveredUsd", "remainingInvestmentUsd", "dynamicCostPerPieceUsd",
             "netProfitUsd", "initialCostPerPieceUsd", "averageMarginUsd", "targetRevenueUsd", "totalInvestmentUsd")
    try:
        display = {k: (to_display(snap[k], cfg["exchangeRate"], currency) if snap[k] is not None else None) for k in money}
    except ValueError as e:
        return _error(e)
    code = get_settings()["currencies"][currency]
    formatted = {k: format_currency(v, code) for k, v in display.items()}
    phase = "free_profit" if snap["isROIReached"] else "recovery"
    return jsonify({"ok": True, "snapshot": snap, "phase": phase, "currency": currency,
                    "display": display, "formatted": formatted,
                    "projection": projection_summary(snap)})

# -------- Sales --------
@app.get("/sales")
def sales_get():
    sales = all_sales()
    return jsonify({"ok": True, "sales": [{**s, "profit": sale_profit(s)} for s in sales]})

@app.post("/sales")
def sales_post():
    data = request.get_json(force=True, silent=True) or {}
    if not isinstance(data, dict):
        return _error("body must be a JSON object")
    if data.get("price") is None:
        return _error("Provide a sale 'price'.")
    try:
        sale = add_sale(
            get_config(),
            float(data["price"]),
            currency=data.get("currency") or get_settings()["display_currency"],
            date_iso=data.get("date"),
            method=data.get("method") or get_settings()["default_method"],
            client=data.get("client", ""),
        )
    except (TypeError, ValueError) as e:
        return _error(e)
    return jsonify({"ok": True, "sale": sale}), 201

@app.delete("/sales/<sale_id>")
def sales_delete(sale_id):
    try:
        removed = delete_sale(sale_id)
    except ValueError as e:
        return _error(e, 404)
    return jsonify({"ok": True, "deleted": removed})

# -------- Simulator --------
@app.post("/simulate")
def simulate():
    data = request.get_json(force=True, silent=True) or {}
    if not isinstance(data, dict):
        return _error("body must be a JSON object")
    cfg = get_config()
    try:
        currency = data.get("currency") or get_settings()["display_currency"]
        price = to_base(float(data.get("price", 0)), cfg["exchangeRate"], currency)
        result = simulate_sale(cfg, compute_snapshot(cfg, all_sales()), price, clamp_profit=bool(data.get("clamp", False)))
    except (TypeError, ValueError) as e:
        return _error(e)
    return jsonify({"ok": True, "simulation": result})

# -------- Charts --------
def _chart_context():
    cfg = get_config()
    return cfg, all_sales(), display_factor(cfg["exchangeRate"], _currency_arg())

@app.get("/charts/progress")
def chart_progress():
    try:
        cfg, sales, factor = _chart_context()
    except ValueError as e:
        return _error(e)
    return jsonify({"ok": True, "series": cumulative_series(cfg, sales, factor)})

@app.get("/charts/projection")
def chart_projection():
    try:
        cfg, sales, factor = _chart_context()
        steps = int(request.args.get("steps", 4))
        series = projection_series(compute_snapshot(cfg, sales), sales, steps=steps, factor=factor)
    except ValueError as e:
        return _error(e)
    return jsonify({"ok": True, "series": series})

@app.get("/charts/split")
def chart_split():
    try:
        cfg, sales, factor = _chart_context()
    except ValueError as e:
        return _error(e)
    return jsonify({"ok": True, "series": capital_split(compute_snapshot(cfg, sales), factor)})

# -------- Export --------
@app.get("/export")
def export_get():
    wb = build_workbook(get_config(), all_sales(), get_settings()["currencies"])
    buf = io.BytesIO()
    wb.save(buf)
    buf.seek(0)
    return send_file(
        buf,
        mimetype="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        as_attachment=True,
        download_name=report_filename(),
    )

# -------- Admin --------
@app.post("/reset")
def reset_all():
    data = request.get_json(force=True, silent=True) or {}
    if not isinstance(data, dict):
        return _error("body must be a JSON object")
    removed = clear_sales()
    if bool(data.get("reset_config", False)):
        write_json("config.json", default_for("config.json"))
        _schedule_job()
    return jsonify({"ok": True, "removed": removed})

if __name__ == "__main__":
    app.run(host="0.0.0.0", port=5000, debug=True)
