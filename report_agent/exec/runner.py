from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from report_agent.exec.duck import QueryResult, StoreConfig, TabularStore
from report_agent.utils.dataset import Dataset

logger = logging.getLogger(__name__)


def execute_queries(dataset: Dataset, queries: Sequence[str], config: Optional[StoreConfig] = None) -> List[QueryResult]:
    """
    Run every statement against the full dataset, in order.

    The dataset is loaded once into a fresh store that is closed afterwards.
    One QueryResult is returned per statement; a failing statement is
    recorded as an error and the batch carries on.
    """
    results: List[QueryResult] = []
    with TabularStore(config) as store:
        store.load(dataset)
        for i, sql in enumerate(queries, start=1):
            res = store.execute(sql)
            if res.ok:
                logger.debug("Query %d returned %d rows", i, len(res.result or []))
            else:
                logger.warning("Query %d failed: %s", i, res.error)
            results.append(res)
    failed = sum(1 for r in results if not r.ok)
    logger.info("Executed %d queries over %d rows (%d failed)", len(results), len(dataset), failed)
    return results
