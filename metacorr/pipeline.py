"""Fan reference batches out to worker processes and gather their results.

The calling thread reads batches and feeds a bounded work queue. Each worker
runs a whole batch (projection, pairing, comparison, lag covariance) and puts
one BatchResult on a bounded result queue. A single collector thread folds
results into the CrossBatchAggregator, so the aggregate is never shared.
"""
from __future__ import annotations

import logging
import multiprocessing as mp
import queue
import time
import traceback
from threading import Thread
from typing import Iterable, List, Optional

from tqdm import tqdm

from metacorr.bamio import ReferenceBatch
from metacorr.codons import compare_pairs, genetic_code
from metacorr.config import P2Config
from metacorr.correlation import BatchResult, CrossBatchAggregator, LagStatistics, calc_lag_covariance
from metacorr.errors import PipelineError
from metacorr.reads import ReadFilter, project_records
from metacorr.window import slide_reads

logger = logging.getLogger(__name__)

# Message kinds on the result queue
_RESULT = "result"
_ERROR = "error"
_DONE = "done"

# Seconds between liveness checks while waiting for results
_POLL_INTERVAL = 1.0


def process_batch(batch: ReferenceBatch, config: P2Config) -> BatchResult:
    """Run one reference batch through the whole per-batch pipeline."""
    read_filter = ReadFilter(config)
    code_table = genetic_code(config.genetic_code)
    pair_count = 0

    def tally(pairs):
        nonlocal pair_count
        for pair in pairs:
            pair_count += 1
            yield pair

    reads = project_records(batch.records, read_filter)
    pairs = tally(slide_reads(reads))
    profiles = compare_pairs(pairs, code_table, config.min_base_quality)
    covs = calc_lag_covariance(profiles, config.max_lag)

    logger.debug(
        f"{batch.reference}: {read_filter.used} reads used, "
        f"{read_filter.discarded} discarded, {pair_count} pairs"
    )
    return BatchResult.from_covariance(
        batch.reference, covs,
        reads_used=read_filter.used,
        reads_discarded=read_filter.discarded,
        pairs=pair_count,
    )


def _worker(work_queue, result_queue, config: P2Config) -> None:
    """Process batches until a None sentinel arrives.

    After a failure the worker keeps draining its queue so that the reader
    never blocks on a full queue.
    """
    failed = False
    while True:
        batch = work_queue.get()
        if batch is None:
            break
        if failed:
            continue
        try:
            result_queue.put((_RESULT, process_batch(batch, config)))
        except Exception:
            failed = True
            result_queue.put((_ERROR, f"{batch.reference}:\n{traceback.format_exc()}"))
    result_queue.put((_DONE, None))


def _collect(result_queue, workers: List, aggregator: CrossBatchAggregator,
             errors: List[str], pbar: tqdm) -> None:
    """Drain results until every worker has reported completion."""
    done = 0
    while done < len(workers):
        try:
            kind, payload = result_queue.get(timeout=_POLL_INTERVAL)
        except queue.Empty:
            if not any(w.is_alive() for w in workers):
                errors.append("worker processes exited without reporting completion")
                return
            continue

        if kind == _DONE:
            done += 1
        elif kind == _ERROR:
            errors.append(payload)
        else:
            try:
                aggregator.add(payload)
            except ValueError as e:
                errors.append(str(e))
            pbar.update(1)


def _feed(work_queue, item, workers: List) -> None:
    """Put item on the work queue, giving up once no worker is left to take it."""
    while True:
        try:
            work_queue.put(item, timeout=_POLL_INTERVAL)
            return
        except queue.Full:
            if not any(w.is_alive() for w in workers):
                raise PipelineError("worker processes exited while work was still queued")


def run_pipeline(batches: Iterable[ReferenceBatch], config: P2Config,
                 total: Optional[int] = None) -> LagStatistics:
    """Compute per-lag statistics over all batches with a pool of workers.

    ``total`` only sizes the progress bar and may be an upper bound, e.g. the
    number of header references when some of them have no placed reads.
    """
    n_workers = config.resolved_workers()
    start_time = time.time()
    logger.info(f"Starting correlation run with {n_workers} workers, max lag {config.max_lag}")

    ctx = mp.get_context()
    work_queue = ctx.Queue(maxsize=2 * n_workers)
    result_queue = ctx.Queue(maxsize=2 * n_workers)
    workers = [
        ctx.Process(target=_worker, args=(work_queue, result_queue, config),
                    name=f"metacorr-worker-{i}", daemon=True)
        for i in range(n_workers)
    ]
    for w in workers:
        w.start()

    aggregator = CrossBatchAggregator(config.max_lag, config.min_pairs)
    errors: List[str] = []
    with tqdm(total=total, desc="References", unit="ref", disable=not config.progress) as pbar:
        collector = Thread(target=_collect, args=(result_queue, workers, aggregator, errors, pbar),
                           name="metacorr-aggregator", daemon=True)
        collector.start()
        try:
            for batch in batches:
                _feed(work_queue, batch, workers)
            for _ in workers:
                _feed(work_queue, None, workers)
        except BaseException:
            logger.error("Feeding batches failed, stopping workers")
            for w in workers:
                w.terminate()
            work_queue.cancel_join_thread()
            raise
        collector.join()
        # references without placed reads never become batches
        pbar.total = pbar.n
        pbar.refresh()

    for w in workers:
        w.join()

    if errors:
        raise PipelineError("Worker failure:\n" + "\n".join(errors))

    stats = aggregator.result()
    logger.info(
        f"Processed {stats.batches} references in {time.time() - start_time:.2f} seconds: "
        f"{stats.reads_used} reads used, {stats.reads_discarded} discarded, {stats.pairs} pairs"
    )
    return stats
