"""Salt mining for hook addresses.

Candidates are the dense sequence 0, 1, 2, ... so the first match is always
the smallest salt below the bound, and re-running with a larger bound returns
the same answer.
"""
import multiprocessing
import os
import signal
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ProcessPoolExecutor, wait
from concurrent.futures.process import BrokenProcessPool
from typing import Callable, Dict, Optional, Tuple

import structlog

from hook_miner.address import derive_address, to_checksum
from hook_miner.flags import is_valid_mask
from hook_miner.models import (
    Cancelled,
    Found,
    InvalidMask,
    MiningProgress,
    MiningRequest,
    MiningResult,
    NotFound,
)
from hook_miner.verifier import matches

log = structlog.get_logger(__name__)

DEFAULT_MAX_ITERATIONS = 1_000_000
DEFAULT_REPORT_EVERY = 10_000
DEFAULT_CHUNK_SIZE = 50_000

ProgressObserver = Callable[[MiningProgress], None]


def mine(
    request: MiningRequest,
    *,
    observer: Optional[ProgressObserver] = None,
    report_every: int = DEFAULT_REPORT_EVERY,
    cancel: Optional[threading.Event] = None,
) -> MiningResult:
    """Search salts [0, max_iterations) for the first address carrying exactly the target flags."""
    if report_every <= 0:
        raise ValueError(f"report_every must be > 0, got {report_every}")

    if not is_valid_mask(request.target_mask):
        log.info("invalid target mask", target_mask=request.target_mask)
        return InvalidMask(target_mask=request.target_mask)

    log.info(
        "mining started",
        deployer=to_checksum(int.from_bytes(request.identity, "big")),
        init_code_hash=request.fingerprint.hex(),
        target_mask=f"0x{request.target_mask:04x}",
        max_iterations=request.max_iterations,
    )

    identity = request.identity
    fingerprint = request.fingerprint
    target_mask = request.target_mask
    started = time.monotonic()

    for salt in range(request.max_iterations):
        if cancel is not None and cancel.is_set():
            result = Cancelled(iterations=salt)
            break

        if observer is not None and salt and salt % report_every == 0:
            observer(MiningProgress(salt, request.max_iterations, time.monotonic() - started))

        address = derive_address(identity, salt, fingerprint)
        if matches(address, target_mask):
            result = Found(salt=salt, address=address, iterations=salt + 1)
            break
    else:
        result = NotFound(iterations=request.max_iterations)

    elapsed = time.monotonic() - started
    if observer is not None:
        observer(MiningProgress(result.iterations, request.max_iterations, elapsed, complete=True))

    _log_result(result, elapsed)
    return result


# Salts are checked against the shared limit this often inside a chunk.
LIMIT_CHECK_EVERY = 4096

# Set in each worker process by _init_worker.
_salt_limit = None


def _init_worker(salt_limit) -> None:
    """Pool initializer. Ctrl-C is delivered to the whole process group; only the parent handles it."""
    global _salt_limit
    signal.signal(signal.SIGINT, signal.SIG_IGN)
    _salt_limit = salt_limit


def _search_range(
    identity: bytes, fingerprint: bytes, target_mask: int, start: int, stop: int
) -> Tuple[int, Optional[Tuple[int, int]]]:
    """Worker body: (salts tested, first (salt, address) match) for [start, stop).

    Stops early once the shared limit drops to or below the current salt.
    """
    for salt in range(start, stop):
        if _salt_limit is not None and (salt - start) % LIMIT_CHECK_EVERY == 0 and salt >= _salt_limit.value:
            return salt - start, None
        address = derive_address(identity, salt, fingerprint)
        if matches(address, target_mask):
            return salt - start + 1, (salt, address)
    return stop - start, None


def _worker_pool(workers: int, salt_limit) -> ProcessPoolExecutor:
    return ProcessPoolExecutor(
        max_workers=workers,
        initializer=_init_worker,
        initargs=(salt_limit,),
    )


def mine_parallel(
    request: MiningRequest,
    *,
    workers: Optional[int] = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    observer: Optional[ProgressObserver] = None,
    cancel: Optional[threading.Event] = None,
) -> MiningResult:
    """Same contract as `mine`, with contiguous salt chunks searched in worker processes.

    Chunks are handed out in ascending order. Once a match at salt k is known,
    no chunk starting at or above k is started, running chunks stop at k, and
    every chunk below k is still searched, so the reduction returns the same
    smallest salt as `mine`. The pool is shut down before returning.
    """
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be > 0, got {chunk_size}")

    if not is_valid_mask(request.target_mask):
        log.info("invalid target mask", target_mask=request.target_mask)
        return InvalidMask(target_mask=request.target_mask)

    if request.max_iterations == 0:
        return NotFound(iterations=0)

    workers = workers or os.cpu_count() or 1
    window = workers * 2
    log.info(
        "parallel mining started",
        workers=workers,
        chunk_size=chunk_size,
        target_mask=f"0x{request.target_mask:04x}",
        max_iterations=request.max_iterations,
    )

    started = time.monotonic()
    best: Optional[Tuple[int, int]] = None
    searched = 0
    next_start = 0
    in_flight: Dict[Future, Tuple[int, int]] = {}
    result: Optional[MiningResult] = None

    # Salts at or above this are never worth testing. Signed 64-bit, so clamp huge bounds.
    salt_limit = multiprocessing.Value("q", min(request.max_iterations, (1 << 63) - 1))
    executor = _worker_pool(workers, salt_limit)
    try:
        while True:
            if cancel is not None and cancel.is_set():
                result = Cancelled(iterations=searched)
                break

            limit = request.max_iterations if best is None else best[0]
            while len(in_flight) < window and next_start < limit:
                stop = min(next_start + chunk_size, request.max_iterations)
                future = executor.submit(
                    _search_range,
                    request.identity,
                    request.fingerprint,
                    request.target_mask,
                    next_start,
                    stop,
                )
                in_flight[future] = (next_start, stop)
                next_start = stop

            # Chunks at or above the best salt can no longer improve the answer.
            if best is not None:
                for future, (start, _) in list(in_flight.items()):
                    if start >= best[0] and future.cancel():
                        del in_flight[future]

            if not in_flight:
                break

            done, _ = wait(in_flight, timeout=0.5, return_when=FIRST_COMPLETED)
            for future in done:
                start, stop = in_flight.pop(future)
                try:
                    tested, hit = future.result()
                except (KeyboardInterrupt, BrokenProcessPool):
                    if cancel is None or not cancel.is_set():
                        raise
                    log.debug("worker stopped by interrupt", chunk_start=start)
                    continue
                searched += tested
                if hit is not None and (best is None or hit[0] < best[0]):
                    best = hit
                    with salt_limit.get_lock():
                        salt_limit.value = hit[0]
                    log.debug("chunk matched", salt=hit[0], chunk_start=start)

            if observer is not None and done:
                observer(MiningProgress(searched, request.max_iterations, time.monotonic() - started))
    finally:
        with salt_limit.get_lock():
            salt_limit.value = 0
        executor.shutdown(wait=True, cancel_futures=True)

    if result is None:
        if best is not None:
            salt, address = best
            result = Found(salt=salt, address=address, iterations=salt + 1)
        else:
            result = NotFound(iterations=request.max_iterations)

    elapsed = time.monotonic() - started
    if observer is not None:
        observer(MiningProgress(result.iterations, request.max_iterations, elapsed, complete=True))

    _log_result(result, elapsed)
    return result


def _log_result(result: MiningResult, elapsed: float) -> None:
    match result:
        case Found(salt=salt, address=address, iterations=iterations):
            log.info("salt found", salt=salt, address=to_checksum(address), iterations=iterations, elapsed=round(elapsed, 3))
        case NotFound(iterations=iterations):
            log.info("no matching salt", iterations=iterations, elapsed=round(elapsed, 3))
        case Cancelled(iterations=iterations):
            log.info("mining cancelled", iterations=iterations, elapsed=round(elapsed, 3))
