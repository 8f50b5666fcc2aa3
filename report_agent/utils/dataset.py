from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import pandas as pd

from report_agent.errors import InputError

Row = Dict[str, str]


@dataclass(frozen=True)
class Dataset:
    """
    Ordered rows sharing one column set. Column order comes from the first row
    and is canonical for rendering. Built once, not modified during a run.
    """
    columns: Tuple[str, ...]
    rows: Tuple[Row, ...]

    def __post_init__(self) -> None:
        # Columns become SQL identifiers, which DuckDB matches case-insensitively.
        seen: Dict[str, str] = {}
        for name in self.columns:
            if not name:
                raise InputError("Column names must not be empty")
            key = name.lower()
            if key in seen:
                raise InputError(f"Column names {seen[key]!r} and {name!r} collide ignoring case")
            seen[key] = name

    def __len__(self) -> int:
        return len(self.rows)

    @property
    def is_empty(self) -> bool:
        return len(self.rows) == 0

    def head(self, n: int) -> Tuple[Row, ...]:
        return self.rows[:max(0, n)]

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame.from_records(list(self.rows), columns=list(self.columns))

    @classmethod
    def from_records(cls, records: Iterable[Mapping[str, Any]], columns: Optional[Sequence[str]] = None) -> "Dataset":
        rows: List[Row] = []
        cols: Optional[Tuple[str, ...]] = tuple(columns) if columns is not None else None
        for i, rec in enumerate(records):
            if cols is None:
                cols = tuple(rec.keys())
            if set(rec.keys()) != set(cols):
                raise InputError(
                    f"Row {i + 1} has columns {sorted(rec.keys())}, expected {sorted(cols)}"
                )
            rows.append({c: _cell(rec[c]) for c in cols})
        return cls(columns=cols or (), rows=tuple(rows))

    @classmethod
    def from_dataframe(cls, df: pd.DataFrame) -> "Dataset":
        columns = [str(c) for c in df.columns]
        if len(set(columns)) != len(columns):
            raise InputError("Duplicate column names: " + ", ".join(columns))
        frame = df.copy()
        frame.columns = columns
        frame = frame.astype(object).where(frame.notna(), "")
        return cls.from_records(frame.to_dict(orient="records"), columns=columns)


def _cell(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def load_csv(path: str) -> Dataset:
    # Header row names the columns; every cell is kept as text.
    if not os.path.exists(path):
        raise FileNotFoundError(f"No such CSV file: {path}")
    try:
        df = pd.read_csv(path, dtype=str, keep_default_na=False, skip_blank_lines=True)
    except (pd.errors.EmptyDataError, pd.errors.ParserError, UnicodeDecodeError) as e:
        raise InputError(f"Could not parse {path}: {e}") from e
    return Dataset.from_dataframe(df)
