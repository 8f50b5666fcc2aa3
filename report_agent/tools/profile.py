from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import pandas as pd

from report_agent.utils.dataset import Dataset, Row

SAMPLE_ROWS = 5


@dataclass(frozen=True)
class Sample:
    rows: Tuple[Row, ...]
    columns: Tuple[str, ...]
    total_rows: int

    def metadata(self) -> str:
        return f"Total rows: {self.total_rows}\nColumns: {', '.join(self.columns)}"

    def to_csv(self) -> str:
        if not self.rows:
            return ""
        df = pd.DataFrame.from_records(list(self.rows), columns=list(self.columns))
        return df.to_csv(index=False, lineterminator="\n").rstrip("\n")


def project_sample(dataset: Dataset, n: int = SAMPLE_ROWS) -> Sample:
    # First n rows in file order; no random sampling so the brief is stable across runs.
    return Sample(rows=tuple(dict(r) for r in dataset.head(n)), columns=dataset.columns, total_rows=len(dataset))
