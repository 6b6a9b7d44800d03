"""
Local driver for the fold/combine contract.

Runs the aggregator the way a distributed engine would, inside one process:
records are routed by group key, each group is split into partitions,
partitions are folded concurrently in a thread pool, and the partial
accumulators are tree-merged before finish().  Useful on its own for data
that fits on one machine, and as a reference for engine integrations.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable, Mapping
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional, Tuple

from mlprofile.aggregate.aggregator import AggregatorConfig, DatasetProfileAggregator
from mlprofile.core.profile import DatasetProfile

logger = logging.getLogger(__name__)

GroupKey = Tuple[Tuple[str, str], ...]


def _fold(
    aggregator: DatasetProfileAggregator, records: List[Mapping[str, Any]],
) -> DatasetProfile:
    acc = aggregator.zero()
    for record in records:
        acc = aggregator.reduce(acc, record)
    return acc


def tree_merge(
    aggregator: DatasetProfileAggregator, partials: List[DatasetProfile],
) -> DatasetProfile:
    """Merge *partials* pairwise, level by level, like an engine's combine tree."""
    level = list(partials) or [aggregator.zero()]
    while len(level) > 1:
        merged = [
            aggregator.merge(level[i], level[i + 1])
            for i in range(0, len(level) - 1, 2)
        ]
        if len(level) % 2:
            merged.append(level[-1])
        level = merged
    return level[0]


def profile_records(
    records: Iterable[Mapping[str, Any]],
    config: AggregatorConfig,
    partitions: int = 1,
    max_workers: Optional[int] = None,
) -> Dict[GroupKey, bytes]:
    """
    Profile *records*, one finished profile per group.

    Parameters
    ----------
    records : iterable of mappings
    config : AggregatorConfig
    partitions : int
        Number of partitions each group is split into (round-robin).
    max_workers : int, optional
        Thread pool size.  Defaults to ThreadPoolExecutor's default.

    Returns
    -------
    dict
        Group key → serialized (non-chunked) profile bytes.
    """
    if partitions < 1:
        raise ValueError("partitions must be >= 1")

    aggregator = DatasetProfileAggregator(config)
    groups: Dict[GroupKey, List[List[Mapping[str, Any]]]] = defaultdict(
        lambda: [[] for _ in range(partitions)]
    )
    counters: Dict[GroupKey, int] = defaultdict(int)
    for record in records:
        key = aggregator.group_key(record)
        groups[key][counters[key] % partitions].append(record)
        counters[key] += 1

    results: Dict[GroupKey, bytes] = {}
    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        futures = {
            key: [pool.submit(_fold, aggregator, part) for part in parts]
            for key, parts in groups.items()
        }
        for key, group_futures in futures.items():
            partials = [f.result() for f in group_futures]
            results[key] = aggregator.finish(tree_merge(aggregator, partials))
            logger.info(
                "Finished group %s: %d records in %d partitions",
                dict(key), counters[key], partitions,
            )
    return results


def profile_dataframe(
    df: Any,
    config: AggregatorConfig,
    partitions: int = 1,
    max_workers: Optional[int] = None,
) -> Dict[GroupKey, bytes]:
    """profile_records() over the rows of a pandas, polars or pyarrow frame."""
    # Lazy import: adapters pull in optional backends.
    from mlprofile.adapters import iter_records

    return profile_records(iter_records(df), config, partitions, max_workers)
