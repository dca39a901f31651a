"""Aggregation of manifests across a table's whole snapshot history."""

from __future__ import annotations

import time
from concurrent.futures import Executor
from typing import Callable
from typing import Dict
from typing import Iterable
from typing import List
from typing import Optional

from orso.logging import get_logger
from pyiceberg.manifest import ManifestFile
from pyiceberg.table.snapshots import Snapshot

from .exceptions import ManifestHistoryIOError
from .iterables import MaterializedIterable
from .metrics import PlanningMetrics
from .parallel import ParallelIterable

logger = get_logger()

ManifestLoader = Callable[[Snapshot], Iterable[ManifestFile]]


def _manifest_list_reader(
    snapshot: Snapshot, load_manifests: ManifestLoader, metrics: Optional[PlanningMetrics]
) -> Callable[[], List[ManifestFile]]:
    def read() -> List[ManifestFile]:
        start_time = time.perf_counter()
        manifests = list(load_manifests(snapshot))
        elapsed_ms = (time.perf_counter() - start_time) * 1000

        if metrics is not None:
            metrics.record_manifest_list_read(elapsed_ms, len(manifests))
        logger.debug(
            f"Read manifest list of snapshot {snapshot.snapshot_id}: "
            f"{len(manifests)} manifests in {elapsed_ms:.1f}ms"
        )
        return manifests

    return read


def all_manifest_files(
    snapshots: Iterable[Snapshot],
    load_manifests: ManifestLoader,
    executor: Executor,
    metrics: Optional[PlanningMetrics] = None,
) -> MaterializedIterable[ManifestFile]:
    """Collect every distinct manifest referenced by any of the given snapshots.

    Manifest lists are read concurrently on ``executor``, one task per
    snapshot. Manifests are identified by ``manifest_path``; a manifest shared
    by several snapshots is returned once. The result is fully materialized
    before this function returns, and closing it is a no-op.

    Args:
        snapshots: Snapshots whose manifest lists are read.
        load_manifests: Returns the manifests visible at one snapshot.
        executor: Borrowed worker pool bounding the concurrent reads.
        metrics: Optional collector for read and aggregation timings.

    Returns:
        The deduplicated manifests, in no particular order.

    Raises:
        ManifestHistoryIOError: If the concurrent reader fails to close after
            it was fully consumed.
    """
    start_time = time.perf_counter()
    snapshots = list(snapshots)

    iterable: ParallelIterable[ManifestFile] = ParallelIterable(
        [_manifest_list_reader(snapshot, load_manifests, metrics) for snapshot in snapshots],
        executor,
    )

    unique: Dict[str, ManifestFile] = {}
    mentions = 0
    try:
        for manifest in iterable:
            mentions += 1
            unique.setdefault(manifest.manifest_path, manifest)
    except BaseException:
        iterable.close_quietly()
        raise

    try:
        iterable.close()
    except Exception as exc:
        raise ManifestHistoryIOError("Failed to close parallel iterable") from exc

    elapsed_ms = (time.perf_counter() - start_time) * 1000
    if metrics is not None:
        metrics.record_plan(elapsed_ms, len(snapshots), mentions, len(unique))
    logger.info(
        f"Manifest history: {len(unique)} unique manifests from {mentions} references "
        f"across {len(snapshots)} snapshots in {elapsed_ms:.1f}ms"
    )

    return MaterializedIterable(unique.values())
