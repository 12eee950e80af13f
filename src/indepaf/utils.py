from __future__ import annotations

import gzip
import json
import logging
import math
from pathlib import Path
from typing import Any, Sequence, TextIO

import numpy as np

from .errors import NumericDegeneracyError

logger = logging.getLogger(__name__)


def round_half_up(x: float) -> int:
    # Python's round() is banker's rounding; PLs round .5 upwards.
    return int(math.floor(x + 0.5))


def log10_sum_log10(values: Sequence[float] | np.ndarray) -> float:
    """log10(sum(10**v)) without leaving log space."""
    arr = np.asarray(values, dtype=float)
    if arr.size == 0:
        return float("-inf")
    vmax = float(np.max(arr))
    if math.isinf(vmax):
        return vmax
    return vmax + math.log10(float(np.sum(np.power(10.0, arr - vmax))))


def normalize_from_log10(values: Sequence[float] | np.ndarray, *, log10_out: bool = True) -> np.ndarray:
    """Normalize log10 values so the linear probabilities sum to 1.

    With ``log10_out`` the result stays in log10 space, otherwise linear probabilities
    are returned.
    """
    arr = np.asarray(values, dtype=float)
    total = log10_sum_log10(arr)
    if not math.isfinite(total):
        raise NumericDegeneracyError(f"Cannot normalize log10 vector {arr.tolist()}")
    out = arr - total
    if log10_out:
        return out
    return np.power(10.0, out)


def log10_one_minus_pow10(x: float) -> float:
    """log10(1 - 10**x) for x <= 0."""
    if x > 0.0:
        raise ValueError(f"log10 probability must be <= 0, got {x}")
    if x == 0.0:
        return float("-inf")
    # log1p/expm1 keep precision for both tiny and near-one probabilities
    ln_x = x * math.log(10.0)
    if ln_x > -math.log(2.0):
        return math.log10(-math.expm1(ln_x))
    return math.log1p(-math.exp(ln_x)) / math.log(10.0)


def phred_from_log10(log10_p: float) -> float:
    return -10.0 * log10_p


def ensure_outdir(path: str | Path) -> Path:
    p = Path(path)
    p.mkdir(parents=True, exist_ok=True)
    return p


def open_textmaybe_gzip(path: str | Path, mode: str = "rt") -> TextIO:
    p = str(path)
    if p.endswith(".gz"):
        return gzip.open(p, mode)  # type: ignore[return-value]
    return open(p, mode)


def write_json(path: str | Path, obj: Any) -> None:
    with open(path, "wt", encoding="utf-8") as f:
        json.dump(obj, f, indent=2, sort_keys=True)
