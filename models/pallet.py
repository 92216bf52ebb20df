import math
from typing import Dict, Optional
from utils.file_manager import read_json, write_json, default_for, locked
from utils.currency import CURRENCIES

PALLET_FIELDS = ("investmentUsd", "exchangeRate", "totalPieces", "additionalExpensesUsd", "targetMultiplier")
SETTINGS_KEYS = ("currencies", "display_currency", "default_method", "autoexport")

def _cfg() -> Dict:
    cfg = read_json("config.json")
    defaults = default_for("config.json")
    # fill keys missing from older config files
    for k, v in defaults.items():
        cfg.setdefault(k, v)
    for k, v in defaults["pallet"].items():
        cfg["pallet"].setdefault(k, v)
    return cfg

def validate_config(pallet: Dict):
    unknown = set(pallet) - set(PALLET_FIELDS)
    if unknown:
        raise ValueError(f"Unknown config field(s): {', '.join(sorted(unknown))}")
    for k in PALLET_FIELDS:
        if k not in pallet:
            raise ValueError(f"Missing config field: {k}")
        v = pallet[k]
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            raise ValueError(f"{k} must be a number")
        if not math.isfinite(v):
            raise ValueError(f"{k} must be a finite number")
    if pallet["investmentUsd"] < 0:
        raise ValueError("investmentUsd must not be negative")
    if pallet["additionalExpensesUsd"] < 0:
        raise ValueError("additionalExpensesUsd must not be negative")
    if pallet["exchangeRate"] <= 0:
        raise ValueError("exchangeRate must be positive")
    if pallet["targetMultiplier"] <= 0:
        raise ValueError("targetMultiplier must be positive")
    if int(pallet["totalPieces"]) != pallet["totalPieces"] or pallet["totalPieces"] < 0:
        raise ValueError("totalPieces must be a non-negative integer")

def _merge_config(current: Dict, changes: Dict) -> Dict:
    pallet = {**current, **changes}
    validate_config(pallet)
    pallet["totalPieces"] = int(pallet["totalPieces"])
    return pallet

def _merge_settings(cfg: Dict, changes: Dict) -> Dict:
    """Return the settings with ``changes`` applied, raising ValueError on any bad value."""
    out = {k: cfg[k] for k in SETTINGS_KEYS}
    for k, v in changes.items():
        if k not in SETTINGS_KEYS:
            raise ValueError(f"Unknown setting: {k}")
        if k == "display_currency" and v not in CURRENCIES:
            raise ValueError(f"display_currency must be one of {', '.join(CURRENCIES)}")
        if k == "currencies":
            if not isinstance(v, dict) or set(v) != set(CURRENCIES) \
                    or not all(isinstance(code, str) and code for code in v.values()):
                raise ValueError("currencies needs non-empty 'base' and 'secondary' codes")
        if k == "default_method" and not isinstance(v, str):
            raise ValueError("default_method must be a string")
        if k == "autoexport":
            if not isinstance(v, dict):
                raise ValueError("autoexport must be an object")
            v = {**out["autoexport"], **v}
            try:
                interval = int(v["interval_seconds"])
            except (TypeError, ValueError):
                raise ValueError("autoexport.interval_seconds must be an integer")
            if interval <= 0:
                raise ValueError("autoexport needs a positive interval_seconds")
            v = {"enabled": bool(v.get("enabled")), "interval_seconds": interval}
        out[k] = v
    return out

def get_config() -> Dict:
    return _cfg()["pallet"]

def save_config(pallet: Dict):
    with locked():
        cfg = _cfg()
        cfg["pallet"] = pallet
        write_json("config.json", cfg)

def update_config(changes: Dict) -> Dict:
    """Apply a partial pallet config update; nothing is saved if it is invalid."""
    return apply_changes(pallet=changes)["pallet"]

def get_settings() -> Dict:
    cfg = _cfg()
    return {k: cfg[k] for k in SETTINGS_KEYS}

def update_settings(changes: Dict) -> Dict:
    return apply_changes(settings=changes)["settings"]

def apply_changes(pallet: Optional[Dict] = None, settings: Optional[Dict] = None) -> Dict:
    """Validate a pallet update and a settings update together, then save both at once."""
    with locked():
        cfg = _cfg()
        if pallet is not None:
            cfg["pallet"] = _merge_config(cfg["pallet"], pallet)
        if settings:
            cfg.update(_merge_settings(cfg, settings))
        write_json("config.json", cfg)
    return {"pallet": cfg["pallet"], "settings": {k: cfg[k] for k in SETTINGS_KEYS}}
