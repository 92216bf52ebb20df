import copy
import json
import logging
import os
import tempfile
import threading
from contextlib import contextmanager

LOG = logging.getLogger(__name__)

_DATA_DIR = os.path.join(os.path.dirname(os.path.dirname(__file__)), "data")
_FILE_LOCK = threading.Lock()
# held across a whole load -> modify -> save; re-entrant so helpers can nest
_STATE_LOCK = threading.RLock()

DEFAULTS = {
    "config.json": {
        "pallet": {
            "investmentUsd": 1250.0,
            "exchangeRate": 19.5,
            "totalPieces": 250,
            "additionalExpensesUsd": 0.0,
            "targetMultiplier": 2.0,
        },
        "currencies": {
            "base": "USD",
            "secondary": "MXN"
        },
        "display_currency": "secondary",
        "default_method": "Cash",
        "autoexport": {
            "enabled": False,
            "interval_seconds": 3600
        }
    },
    "sales.json": [],
}

@contextmanager
def locked():
    with _STATE_LOCK:
        yield

def default_for(filename: str):
    return copy.deepcopy(DEFAULTS[filename])

def data_path(filename: str) -> str:
    os.makedirs(_DATA_DIR, exist_ok=True)
    return os.path.join(_DATA_DIR, filename)

def _atomic_write(path: str, data_obj):
    tmp_fd, tmp_path = tempfile.mkstemp(prefix=".tmp_", dir=os.path.dirname(path))
    try:
        with os.fdopen(tmp_fd, "w", encoding="utf-8") as f:
            json.dump(data_obj, f, indent=2)
        os.replace(tmp_path, path)
    finally:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)

def ensure_defaults():
    os.makedirs(_DATA_DIR, exist_ok=True)
    for fname in DEFAULTS:
        path = data_path(fname)
        if not os.path.exists(path):
            with _FILE_LOCK:
                _atomic_write(path, default_for(fname))

def read_json(filename: str):
    """Load a data file; a missing or unparseable file is replaced by its default."""
    path = data_path(filename)
    with _FILE_LOCK:
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except FileNotFoundError:
            if filename not in DEFAULTS:
                raise
            LOG.info("%s not found, writing defaults", filename)
        except json.JSONDecodeError as exc:
            if filename not in DEFAULTS:
                raise
            LOG.warning("%s is malformed (%s), falling back to defaults", filename, exc)
        default = default_for(filename)
        _atomic_write(path, default)
        return default

def write_json(filename: str, obj):
    path = data_path(filename)
    with _FILE_LOCK:
        _atomic_write(path, obj)

def reports_dir() -> str:
    path = os.path.join(_DATA_DIR, "reports")
    os.makedirs(path, exist_ok=True)
    return path
