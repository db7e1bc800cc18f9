import os
import re
import json
import math
from pathlib import Path
from typing import Any, Dict, Optional

BASE_DIR = Path(__file__).resolve().parent.parent
DEFAULT_DATA_DIR = BASE_DIR / "data"

APPDATA = os.environ.get("APPDATA")
if os.environ.get("GRADEBOOK_DATA_DIR"):
    USER_DATA_DIR = Path(os.environ["GRADEBOOK_DATA_DIR"])
elif APPDATA:
    USER_DATA_DIR = Path(APPDATA) / "Gradebook" / "data"
else:
    USER_DATA_DIR = DEFAULT_DATA_DIR  # fallback

def load_json(path: Path, default: Any):
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, ValueError):
        return default

def save_json(path: Path, obj: Any):
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(obj, f, ensure_ascii=False, indent=2)

_NBSP_RE = re.compile(r"[\u00A0\u2007\u202F]")  # NBSP variants
_MARK_RE = re.compile(r"^\s*(\d+)(?:\.\d*)?\s*$")


def cell_text(v: Any) -> str:
    """
    Text of a raw cell for matching:
    - None/NaN -> ""
    - BOM and non-breaking spaces removed
    - whitespace collapsed
    """
    if v is None:
        return ""
    if isinstance(v, float) and math.isnan(v):
        return ""
    s = str(v).replace("\ufeff", "")
    s = _NBSP_RE.sub(" ", s)
    return re.sub(r"\s+", " ", s).strip()


def norm_text(s: Any) -> str:
    # lower + punctuation to spaces, used for header/synonym matching
    t = cell_text(s).lower()
    t = re.sub(r"[^a-z0-9\s]", " ", t)
    return re.sub(r"\s+", " ", t).strip()


def parse_mark(v: Any) -> Optional[int]:
    """
    Raw cell -> integer mark in [0, 100] or None.
    Fractional values are truncated ("78.5" -> 78); anything negative,
    above 100 or non-numeric gives None.
    """
    if v is None or isinstance(v, bool):
        return None
    if isinstance(v, (int, float)):
        if isinstance(v, float) and (math.isnan(v) or math.isinf(v)):
            return None
        if v < 0:
            return None
        n = int(v)
    else:
        m = _MARK_RE.match(cell_text(v))
        if not m:
            return None
        n = int(m.group(1))
    if n < 0 or n > 100:
        return None
    return n


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(base)
    for k, v in override.items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _deep_merge(out[k], v)
        else:
            out[k] = v
    return out

def rules_path() -> Path:
    return DEFAULT_DATA_DIR / "rules.json"

def user_rules_path() -> Path:
    return USER_DATA_DIR / "rules.json"

def load_rules() -> Dict[str, Any]:
    # shipped defaults, then the user's overrides on top
    rules = load_json(rules_path(), {})
    if not isinstance(rules, dict):
        rules = {}
    if user_rules_path() != rules_path():
        override = load_json(user_rules_path(), {})
        if isinstance(override, dict):
            rules = _deep_merge(rules, override)
    return rules
