"""Leaf-by-leaf orchestration of proof fetching, verification and recording."""

import asyncio
import concurrent.futures
import logging
from typing import Callable, Dict, Mapping, Optional, Protocol, Sequence, Set

from .asset_id import derive_asset_id
from .fetcher import ProofFetcher, create_session
from .merkle import verify_proof
from .rate_limiter import TokenBucket, build_limiters
from .recorder import MismatchRecorder, PathLike, prepare_output_dir
from .tree import TreeMetadataClient
from ..config import (
    BUBBLEGUM_PROGRAM_ID,
    ValidatorConfig,
    DEFAULT_VALIDATOR_CONFIG,
    DEFAULT_APP_CONFIG,
)
from ..errors import SetupError
from ..models.comparison import EndpointSummary, RunSummary
from ..models.progress import ProgressState
from ..models.proof import EndpointResult, FetchOutcome, VerificationOutcome
from ..models.tree import Endpoint, TreeReference

logger = logging.getLogger(__name__)


class Fetcher(Protocol):
    async def fetch(self, asset_id: str) -> FetchOutcome: ...


class ProofParityValidator:
    """Checks every leaf of a tree against every endpoint.

    Leaves are dispatched in index order, each as its own task. The loop only
    waits for a concurrency slot, never for earlier leaves to finish. Each
    fetch waits on its own endpoint's token bucket, so a slow endpoint does
    not hold back the others. run() returns once every dispatched leaf has
    settled.
    """

    def __init__(self,
                 tree: TreeReference,
                 endpoints: Sequence[Endpoint],
                 fetchers: Sequence[Fetcher],
                 limiters: Mapping[str, TokenBucket],
                 recorder: MismatchRecorder,
                 progress: Optional[ProgressState] = None,
                 max_in_flight: int = DEFAULT_VALIDATOR_CONFIG.max_in_flight,
                 program_id: str = BUBBLEGUM_PROGRAM_ID,
                 asset_id_deriver: Callable[[str, int, str], str] = derive_asset_id):
        """Initialize validator.

        Args:
            tree: Tree to validate
            endpoints: Endpoints in order, the first one is canonical
            fetchers: One fetcher per endpoint, same order
            limiters: Token bucket per endpoint label
            recorder: Where mismatching leaves are written
            progress: Progress state (a silent one is created if omitted)
            max_in_flight: Maximum number of leaves being checked at once
            program_id: Program whose conventions derive asset ids
            asset_id_deriver: Function (tree_id, leaf_index, program_id) -> asset id
        """
        if not endpoints:
            raise SetupError("At least one endpoint is required")
        if len(fetchers) != len(endpoints):
            raise SetupError(
                f"Expected {len(endpoints)} fetchers, got {len(fetchers)}"
            )
        missing = [e.label for e in endpoints if e.label not in limiters]
        if missing:
            raise SetupError(f"No rate limiter for endpoints: {', '.join(missing)}")
        if max_in_flight < 1:
            raise SetupError(f"max_in_flight must be at least 1, got {max_in_flight}")

        self.tree = tree
        self.endpoints = list(endpoints)
        self.fetchers = list(fetchers)
        self.limiters = limiters
        self.recorder = recorder
        self.progress = progress or ProgressState(
            [e.label for e in self.endpoints], tree.num_leaves
        )
        self.max_in_flight = max_in_flight
        self.program_id = program_id
        self._derive_asset_id = asset_id_deriver

        # Only touched from the event loop
        self.mismatched_leaves = 0
        self.failed_leaves = 0

    async def run(self) -> RunSummary:
        """Validate every leaf and wait for all of them to settle.

        Returns:
            RunSummary with per-endpoint validity counts
        """
        self._send_message(
            f"Validating {self.tree.num_leaves} leaves of {self.tree.tree_id} "
            f"against {len(self.endpoints)} endpoints"
        )

        semaphore = asyncio.Semaphore(self.max_in_flight)
        pending: Set[asyncio.Task] = set()

        for leaf_index in range(self.tree.num_leaves):
            await semaphore.acquire()
            task = asyncio.create_task(self._check_leaf(leaf_index))
            pending.add(task)
            task.add_done_callback(pending.discard)
            task.add_done_callback(lambda _task: semaphore.release())

        while pending:
            await asyncio.gather(*list(pending))

        summary = self.summary()
        self._send_update(
            f"Done: {summary.completed_leaves}/{summary.total_leaves} leaves, "
            f"{summary.mismatched_leaves} mismatched, {summary.failed_leaves} failed"
        )
        return summary

    async def _check_leaf(self, leaf_index: int) -> None:
        """Check one leaf on every endpoint and record any disagreement.

        Nothing raised in here may escape: the next leaves must still run.
        """
        outcomes: Dict[str, VerificationOutcome] = {}
        try:
            asset_id = self._derive_asset_id(self.tree.tree_id, leaf_index, self.program_id)
            results = await asyncio.gather(*(
                self._check_endpoint(endpoint, fetcher, asset_id)
                for endpoint, fetcher in zip(self.endpoints, self.fetchers)
            ))
            by_label: Dict[str, EndpointResult] = {
                endpoint.label: result
                for endpoint, result in zip(self.endpoints, results)
            }
            outcomes = {label: result.verification for label, result in by_label.items()}
            if self.recorder.record(leaf_index, asset_id, by_label):
                self.mismatched_leaves += 1
        except Exception:
            self.failed_leaves += 1
            logger.exception("Leaf %d: check failed", leaf_index)
        finally:
            self.progress.record_leaf(outcomes)
            self._record_progress()

    def _record_progress(self) -> None:
        if self.progress.should_send_update():
            self._send_update()

    def _send_update(self, message: Optional[str] = None) -> None:
        """Send a progress update; a failing callback does not stop the run."""
        try:
            self.progress.send_update(message)
        except Exception:
            logger.exception("Progress callback failed")

    async def _check_endpoint(self,
                              endpoint: Endpoint,
                              fetcher: Fetcher,
                              asset_id: str) -> EndpointResult:
        """Fetch and verify one proof."""
        await self.limiters[endpoint.label].acquire(1)
        try:
            outcome = await fetcher.fetch(asset_id)
        except Exception as e:
            logger.warning("Fetcher %s raised for %s: %s", endpoint.label, asset_id, e)
            outcome = FetchOutcome.failure(f"{type(e).__name__}: {e}")

        return EndpointResult(fetch_outcome=outcome, verification=verify_proof(outcome))

    def summary(self) -> RunSummary:
        snapshot = self.progress.snapshot()
        return RunSummary(
            tree_id=self.tree.tree_id,
            total_leaves=self.tree.num_leaves,
            completed_leaves=snapshot.completed_leaves,
            mismatched_leaves=self.mismatched_leaves,
            failed_leaves=self.failed_leaves,
            elapsed_seconds=snapshot.elapsed_seconds,
            endpoints=[
                EndpointSummary(e.label, e.valid, e.checked)
                for e in snapshot.endpoints
            ],
        )

    def _send_message(self, message: str) -> None:
        """Send a progress message."""
        logger.info(message)
        try:
            self.progress.send_message(message)
        except Exception:
            logger.exception("Progress callback failed")


async def validate_tree(tree: TreeReference,
                        endpoints: Sequence[Endpoint],
                        output_dir: PathLike,
                        rate_limits: Sequence[int] = (DEFAULT_VALIDATOR_CONFIG.rate_limit,),
                        config: ValidatorConfig = DEFAULT_VALIDATOR_CONFIG,
                        callback: Optional[Callable[[Dict], None]] = None) -> RunSummary:
    """Convenience function to validate a tree against live endpoints.

    Args:
        tree: Tree to validate
        endpoints: Endpoints in order, the first one is canonical
        output_dir: Existing folder for mismatch artifacts
        rate_limits: One rate for every endpoint, or one per endpoint
        config: Validator configuration
        callback: Optional progress callback

    Returns:
        RunSummary
    """
    try:
        limiters = build_limiters(endpoints, rate_limits)
    except ValueError as e:
        raise SetupError(str(e)) from e

    progress = ProgressState(
        [e.label for e in endpoints],
        tree.num_leaves,
        callback=callback,
        update_frequency=DEFAULT_APP_CONFIG.progress_update_frequency,
        update_first_n=DEFAULT_APP_CONFIG.progress_update_first_n,
    )

    async with create_session(config, concurrency=config.max_in_flight * len(endpoints)) as session:
        fetchers = [ProofFetcher(endpoint, session, config) for endpoint in endpoints]
        validator = ProofParityValidator(
            tree=tree,
            endpoints=endpoints,
            fetchers=fetchers,
            limiters=limiters,
            recorder=MismatchRecorder(output_dir),
            progress=progress,
            max_in_flight=config.max_in_flight,
        )
        return await validator.run()


def run_validation(tree_id: str,
                   rpc_url: str,
                   endpoints: Sequence[Endpoint],
                   output_dir: PathLike,
                   force: bool = False,
                   rate_limits: Sequence[int] = (DEFAULT_VALIDATOR_CONFIG.rate_limit,),
                   config: ValidatorConfig = DEFAULT_VALIDATOR_CONFIG,
                   callback: Optional[Callable[[Dict], None]] = None) -> RunSummary:
    """Set up and run a full validation synchronously.

    Raises:
        SetupError: the output folder or the tree metadata is unusable
    """
    folder = prepare_output_dir(output_dir, force)
    tree = TreeMetadataClient(rpc_url, config).fetch_tree(tree_id)

    coro = validate_tree(tree, endpoints, folder, rate_limits, config, callback)
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        # No running loop, create one
        return asyncio.run(coro)

    # Called from async code: run on a fresh loop in a worker thread
    with concurrent.futures.ThreadPoolExecutor(max_workers=1) as executor:
        return executor.submit(asyncio.run, coro).result()
