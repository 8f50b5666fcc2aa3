from __future__ import annotations

import json
import math
from datetime import date, datetime, time as dtime, timedelta
from decimal import Decimal
from pathlib import Path
from typing import Any, Optional
from uuid import UUID

import numpy as np
import pandas as pd
import pyarrow as pa


def to_jsonable(obj: Any, max_rows: Optional[int] = None) -> Any:
    """Normalize query values (dates, decimals, Arrow/pandas objects) into JSON-safe data."""
    if obj is None or isinstance(obj, (bool, int, str)):
        return obj
    if isinstance(obj, float):
        return obj if math.isfinite(obj) else str(obj)
    if isinstance(obj, (date, datetime, dtime)):
        return obj.isoformat()
    if isinstance(obj, timedelta):
        return str(obj)
    if isinstance(obj, Decimal):
        return int(obj) if obj == obj.to_integral_value() else float(obj)
    if isinstance(obj, (UUID, bytes)):
        return str(obj)
    if isinstance(obj, np.generic):
        return to_jsonable(obj.item())
    if isinstance(obj, (list, tuple)):
        items = obj if max_rows is None else obj[:max_rows]
        return [to_jsonable(x) for x in items]
    if isinstance(obj, dict):
        return {str(k): to_jsonable(v) for k, v in obj.items()}
    if isinstance(obj, pd.DataFrame):
        frame = obj if max_rows is None else obj.head(max_rows)
        return [to_jsonable(r) for r in frame.to_dict(orient="records")]
    if isinstance(obj, pa.Table):
        tbl = obj if max_rows is None else obj.slice(0, max_rows)
        return [to_jsonable(r) for r in tbl.to_pylist()]
    if isinstance(obj, pa.Scalar):
        return to_jsonable(obj.as_py())
    try:
        json.dumps(obj)
        return obj
    except (TypeError, ValueError):
        return str(obj)


def default_report_path(csv_path: str) -> str:
    p = Path(csv_path)
    return str(p.with_name(f"{p.stem}_report.html"))


def write_report(path: str, html: str) -> str:
    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(html, encoding="utf-8")
    return str(out)
