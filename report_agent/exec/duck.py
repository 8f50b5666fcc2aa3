from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import duckdb
import pyarrow as pa

from report_agent.errors import InputError
from report_agent.utils.dataset import Dataset

logger = logging.getLogger(__name__)

# Candidate types tried in order when promoting a text column. String to integer
# casts round decimals, so integers must also look like integers. DuckDB dates
# reach past what datetime can hold (infinity, year 10000+), so those stay text.
_PROMOTIONS = (
    ("BIGINT", "regexp_full_match({v}, '[+-]?[0-9]+')"),
    ("DOUBLE", None),
    ("DATE", "coalesce(isfinite(TRY_CAST({v} AS DATE)) AND year(TRY_CAST({v} AS DATE)) BETWEEN 1 AND 9999, false)"),
    ("TIMESTAMP", "coalesce(isfinite(TRY_CAST({v} AS TIMESTAMP)) AND year(TRY_CAST({v} AS TIMESTAMP)) BETWEEN 1 AND 9999, false)"),
)

# Raised while turning Arrow values into Python ones, e.g. dates past year 9999.
_CONVERSION_ERRORS = (ArithmeticError, ValueError, pa.ArrowException)

_READ_PREFIXES = ("SELECT", "WITH", "VALUES", "FROM", "DESCRIBE", "SUMMARIZE", "SHOW", "EXPLAIN", "PRAGMA", "(")

_STAGING = "_report_agent_staging"


@dataclass
class StoreConfig:
    table_name: str = "data"
    infer_types: bool = True


@dataclass
class QueryResult:
    statement: str
    result: Optional[List[Dict[str, Any]]] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def escape_ident(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def _strip_leading_comments(sql: str) -> str:
    lines = [ln for ln in sql.strip().splitlines() if not ln.strip().startswith("--")]
    return "\n".join(lines).strip()


def looks_read_only(statement: str) -> bool:
    head = _strip_leading_comments(statement).upper()
    return head.startswith(_READ_PREFIXES)


def _arrow_table(cursor) -> pa.Table:
    # Newer duckdb deprecates fetch_arrow_table in favour of to_arrow_table.
    fetch = getattr(cursor, "to_arrow_table", None) or cursor.fetch_arrow_table
    return fetch()


class TabularStore:
    """
    In-memory DuckDB table holding one dataset under a fixed name.

    A store belongs to a single run: build it, load once, execute, close.
    """

    def __init__(self, config: Optional[StoreConfig] = None):
        self.config = config or StoreConfig()
        self._con = duckdb.connect(database=':memory:')
        self._lock = threading.Lock()

    @property
    def table_name(self) -> str:
        return self.config.table_name

    def load(self, dataset: Dataset) -> None:
        table = escape_ident(self.table_name)
        with self._lock:
            raw_cols = ", ".join(f"{escape_ident(c)} VARCHAR" for c in dataset.columns)
            self._con.execute(f"DROP TABLE IF EXISTS {table}")
            if not dataset.columns:
                raise InputError("Dataset has no columns")
            self._con.execute(f"CREATE TEMP TABLE {_STAGING} ({raw_cols})")
            try:
                if not dataset.is_empty:
                    frame = dataset.to_frame()
                    self._con.register("_report_agent_frame", frame)
                    try:
                        self._con.execute(f"INSERT INTO {_STAGING} SELECT * FROM _report_agent_frame")
                    finally:
                        self._con.unregister("_report_agent_frame")
                types = self._column_types(dataset.columns) if self.config.infer_types else {c: "VARCHAR" for c in dataset.columns}
                projection = ", ".join(self._cast_expr(c, types[c]) for c in dataset.columns)
                self._con.execute(f"CREATE TABLE {table} AS SELECT {projection} FROM {_STAGING}")
            finally:
                self._con.execute(f"DROP TABLE IF EXISTS {_STAGING}")
        logger.debug("Loaded %d rows into %s (%s)", len(dataset), self.table_name, types)

    def _column_types(self, columns) -> Dict[str, str]:
        types: Dict[str, str] = {}
        for col in columns:
            qc = escape_ident(col)
            non_empty = self._con.execute(
                f"SELECT COUNT(*) FROM {_STAGING} WHERE {qc} IS NOT NULL AND trim({qc}) <> ''"
            ).fetchone()[0]
            types[col] = "VARCHAR"
            if not non_empty:
                continue
            for candidate, shape in _PROMOTIONS:
                v = f"trim({qc})"
                bad = f"TRY_CAST({v} AS {candidate}) IS NULL"
                if shape:
                    bad = f"({bad} OR NOT {shape.format(v=v)})"
                failures = self._con.execute(
                    f"SELECT COUNT(*) FROM {_STAGING} WHERE {v} <> '' AND {bad}"
                ).fetchone()[0]
                if failures == 0:
                    types[col] = candidate
                    break
        return types

    @staticmethod
    def _cast_expr(col: str, col_type: str) -> str:
        qc = escape_ident(col)
        if col_type == "VARCHAR":
            return qc
        return f"CAST(NULLIF(trim({qc}), '') AS {col_type}) AS {qc}"

    def columns(self) -> List[Tuple[str, str]]:
        with self._lock:
            rows = self._con.execute(f"DESCRIBE {escape_ident(self.table_name)}").fetchall()
        return [(r[0], r[1]) for r in rows]

    def execute(self, statement: str) -> QueryResult:
        if not looks_read_only(statement):
            logger.warning("Statement may modify data: %s", statement[:200])
        with self._lock:
            try:
                cursor = self._con.execute(statement)
                if cursor.description is None:
                    return QueryResult(statement=statement, result=[])
                return QueryResult(statement=statement, result=_arrow_table(cursor).to_pylist())
            except duckdb.Error as e:
                logger.debug("Statement failed: %s (%s)", statement[:200], e)
                return QueryResult(statement=statement, error=str(e))
            except _CONVERSION_ERRORS as e:
                logger.debug("Result of %s could not be converted (%s)", statement[:200], e)
                return QueryResult(statement=statement, error=f"{type(e).__name__}: {e}")

    def close(self) -> None:
        self._con.close()

    def __enter__(self) -> "TabularStore":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
