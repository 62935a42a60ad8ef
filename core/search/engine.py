#!/usr/bin/env python3
"""
Offer Search Engine - orchestrates one search request end to end.

    raw params -> compile_filters -> select strategy
               -> [phase 1: resolve candidates]
               -> count || fetch page    (concurrent, one connection each)
               -> snapshot + live provider enrichment
               -> SearchPage

Every store query runs in a read-only transaction with a statement timeout.
Both the caller's cancel event and the overall request budget abort in-flight
statements through a QueryCanceller. Only transient connection errors are
retried; validation errors never reach the store.
"""

import logging
import threading
import time
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from typing import Any, Callable, List, Optional, Sequence

from sqlalchemy.exc import DBAPIError, DisconnectionError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    stop_when_event_set,
    wait_exponential,
)

from core.config_loader import SearchConfig
from core.search.assembler import (
    OfferResult,
    ProviderDirectory,
    SearchPage,
    enrich_provider_display,
    snapshot_result,
)
from core.search.errors import (
    SearchCancelledError,
    SearchTimeoutError,
    StoreError,
)
from core.search.filters import FilterSet, compile_filters
from core.search.pagination import PageRequest, total_pages
from core.search.strategies import OfferHit, QueryStrategy, StoreBackend
from database.database import read_only_scope

logger = logging.getLogger(__name__)

QUERY_CANCELED_PGCODE = "57014"
CONNECTION_EXCEPTION_CLASS = "08"
POLL_INTERVAL_SECONDS = 0.05


def _pgcode(exc: BaseException) -> Optional[str]:
    orig = getattr(exc, "orig", None)
    return getattr(orig, "pgcode", None)


def _error_summary(exc: BaseException) -> str:
    """Error class and first message line of the driver error."""
    orig = getattr(exc, "orig", None) or exc
    lines = str(orig).strip().splitlines()
    first_line = lines[0] if lines else ""
    return f"{type(orig).__name__}: {first_line}"


def is_transient_store_error(exc: BaseException) -> bool:
    """Connection-level failures are safe to retry for read-only queries."""
    if isinstance(exc, DisconnectionError):
        return True
    if not isinstance(exc, DBAPIError):
        return False
    if exc.connection_invalidated:
        return True
    code = _pgcode(exc)
    return bool(code) and code.startswith(CONNECTION_EXCEPTION_CLASS)


class QueryCanceller:
    """
    Tracks the DBAPI connections a request is using so another thread can
    abort their in-flight statements.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._connections = set()
        self.event = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self.event.is_set()

    def register(self, connection: Any) -> None:
        with self._lock:
            if self.event.is_set():
                raise SearchCancelledError("Search cancelled before query start")
            self._connections.add(connection)

    def unregister(self, connection: Any) -> None:
        with self._lock:
            self._connections.discard(connection)

    def cancel(self) -> None:
        # The lock is held while cancelling so a connection cannot be
        # unregistered and handed back to the pool mid-loop.
        with self._lock:
            if self.event.is_set():
                return
            self.event.set()
            for connection in self._connections:
                try:
                    connection.cancel()
                except Exception as e:
                    logger.warning(f"Failed to cancel in-flight statement: {e}")


class OfferSearchEngine:
    """
    Read-only search over offers.

    Args:
        session_factory: Creates sessions bound to the offer store.
        backend: Provides the store-specific query strategies.
        provider_directory_factory: Builds a ProviderDirectory for a session.
        offer_repository_factory: Builds an offer repository for a session
            (used by get_by_id and list_by_provider).
        config: Search settings (limits, timeouts, retry policy).
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        backend: StoreBackend,
        provider_directory_factory: Callable[[Any], ProviderDirectory],
        offer_repository_factory: Callable[[Any], Any],
        config: Optional[SearchConfig] = None,
    ):
        self.session_factory = session_factory
        self.backend = backend
        self.provider_directory_factory = provider_directory_factory
        self.offer_repository_factory = offer_repository_factory
        self.config = config or SearchConfig()
        self._executor = ThreadPoolExecutor(
            max_workers=max(2, self.config.max_workers),
            thread_name_prefix="offer-search",
        )

    def close(self) -> None:
        self._executor.shutdown(wait=False)

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def search(self, raw_filters: Any, cancel_event: Optional[threading.Event] = None) -> SearchPage:
        """
        Run one search.

        Args:
            raw_filters: Mapping or pydantic model with search parameters,
                or an already compiled FilterSet.
            cancel_event: Set by the caller to abandon the request.

        Returns:
            SearchPage with the ordered items and pagination metadata.

        Raises:
            FilterValidationError: Invalid filter combination (no store access).
            SearchTimeoutError: A statement or the request budget timed out.
            SearchCancelledError: cancel_event was set while queries ran.
            StoreError: Any other store failure.
        """
        if isinstance(raw_filters, FilterSet):
            filters = raw_filters
        else:
            filters = compile_filters(
                raw_filters,
                default_limit=self.config.default_limit,
                max_limit=self.config.max_limit,
            )

        strategy = self.backend.select(filters)
        page = PageRequest(page=filters.page, limit=filters.limit)
        canceller = QueryCanceller()
        deadline = time.monotonic() + self.config.request_timeout_seconds
        started = time.monotonic()

        candidates = None
        if strategy.two_phase:
            candidates = self._await(
                [self._submit(self._resolve_candidates, canceller, strategy, filters)],
                canceller, cancel_event, deadline, filters,
            )[0]

        if candidates is not None and len(candidates) == 0:
            logger.info(f"Search matched no candidates: filters={filters.log_context()}")
            return SearchPage(items=[], total=0, page=page.page, total_pages=0)

        total, items = self._await(
            [
                self._submit(self._count, canceller, strategy, filters, candidates),
                self._submit(self._fetch_page, canceller, strategy, filters, page, candidates),
            ],
            canceller, cancel_event, deadline, filters,
        )

        elapsed_ms = (time.monotonic() - started) * 1000
        logger.info(
            f"Search served: strategy={strategy.state.value} total={total} "
            f"returned={len(items)} page={page.page} elapsed_ms={elapsed_ms:.1f} "
            f"filters={filters.log_context()}"
        )
        return SearchPage(
            items=items,
            total=total,
            page=page.page,
            total_pages=total_pages(total, page.limit),
        )

    def get_by_id(self, offer_id: Any) -> Optional[OfferResult]:
        """Resolve one offer by id regardless of status; None when absent or malformed."""

        def lookup(session):
            offer = self.offer_repository_factory(session).get_by_id(offer_id)
            if offer is None:
                return []
            return self._assemble(session, [OfferHit(offer=offer)])

        results = self._run_lookup(lookup, f"get_by_id offer_id={offer_id!r}")
        if not results:
            logger.warning(f"Offer not found: {offer_id!r}")
            return None
        return results[0]

    def list_by_provider(self, provider_id: Any, include_inactive: bool = False) -> List[OfferResult]:
        """Every offer of one provider, newest first. Inactive offers are opt-in."""

        def lookup(session):
            offers = self.offer_repository_factory(session).list_by_provider(
                provider_id, include_inactive=include_inactive
            )
            return self._assemble(session, [OfferHit(offer=o) for o in offers])

        return self._run_lookup(lookup, f"list_by_provider provider_id={provider_id!r}")

    # ------------------------------------------------------------------
    # Store calls (run on worker threads)
    # ------------------------------------------------------------------

    def _scope(self, canceller: Optional[QueryCanceller] = None):
        return read_only_scope(
            self.session_factory,
            statement_timeout_ms=self.config.statement_timeout_ms,
            canceller=canceller,
        )

    def _resolve_candidates(
        self, canceller: QueryCanceller, strategy: QueryStrategy, filters: FilterSet
    ) -> Optional[Sequence[Any]]:
        with self._scope(canceller) as session:
            return strategy.resolve_candidates(session, filters)

    def _count(
        self,
        canceller: QueryCanceller,
        strategy: QueryStrategy,
        filters: FilterSet,
        candidates: Optional[Sequence[Any]],
    ) -> int:
        with self._scope(canceller) as session:
            return strategy.count(session, filters, candidates)

    def _fetch_page(
        self,
        canceller: QueryCanceller,
        strategy: QueryStrategy,
        filters: FilterSet,
        page: PageRequest,
        candidates: Optional[Sequence[Any]],
    ) -> List[OfferResult]:
        with self._scope(canceller) as session:
            hits = strategy.fetch_page(session, filters, page, candidates)
            return self._assemble(session, hits)

    def _assemble(self, session, hits: List[OfferHit]) -> List[OfferResult]:
        # Snapshot while the session is open; rows expire on rollback.
        results = [snapshot_result(hit) for hit in hits]
        if self.config.enrich_provider_display and results:
            results = enrich_provider_display(results, self.provider_directory_factory(session))
        return results

    # ------------------------------------------------------------------
    # Execution plumbing
    # ------------------------------------------------------------------

    def _retrying(self, canceller: Optional[QueryCanceller] = None) -> Retrying:
        stop = stop_after_attempt(max(1, self.config.retry_attempts))
        if canceller is not None:
            stop = stop | stop_when_event_set(canceller.event)
        return Retrying(
            retry=retry_if_exception(is_transient_store_error),
            stop=stop,
            wait=wait_exponential(multiplier=0.1, max=self.config.retry_max_wait_seconds),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )

    def _submit(self, fn: Callable, canceller: QueryCanceller, *args):
        return self._executor.submit(self._retrying(canceller), fn, canceller, *args)

    def _await(
        self,
        futures: list,
        canceller: QueryCanceller,
        cancel_event: Optional[threading.Event],
        deadline: float,
        filters: FilterSet,
    ) -> list:
        """Wait for every future, aborting all of them on the first failure."""
        pending = set(futures)
        while pending:
            done, pending = wait(pending, timeout=POLL_INTERVAL_SECONDS, return_when=FIRST_EXCEPTION)

            for future in done:
                error = future.exception()
                if error is None:
                    continue
                # Classify before cancelling the siblings
                if isinstance(error, SQLAlchemyError):
                    translated = self._translate(error, canceller, filters)
                    canceller.cancel()
                    raise translated from error
                canceller.cancel()
                raise error

            if not pending:
                break

            if cancel_event is not None and cancel_event.is_set():
                canceller.cancel()
                logger.info("Search cancelled by caller; aborting in-flight queries")
                raise SearchCancelledError("Search cancelled by caller")

            if time.monotonic() > deadline:
                canceller.cancel()
                logger.warning(
                    f"Search exceeded request budget of {self.config.request_timeout_seconds}s; "
                    f"aborting in-flight queries"
                )
                raise SearchTimeoutError("Search request timed out")

        return [future.result() for future in futures]

    def _translate(
        self, error: SQLAlchemyError, canceller: Optional[QueryCanceller], filters: Optional[FilterSet]
    ) -> StoreError:
        context = filters.log_context() if filters is not None else {}
        if _pgcode(error) == QUERY_CANCELED_PGCODE:
            if canceller is not None and canceller.cancelled:
                logger.info(f"Search query cancelled: filters={context}")
                return SearchCancelledError("Search cancelled", cause=error)
            logger.warning(f"Search query hit statement timeout: filters={context}")
            return SearchTimeoutError("Search query timed out", cause=error)

        # Statement text and bound parameters stay out of the log
        logger.error(
            f"Offer store query failed: {_error_summary(error)} "
            f"pgcode={_pgcode(error)} filters={context}"
        )
        return StoreError(cause=error)

    def _run_lookup(self, fn: Callable, description: str):
        def run():
            with self._scope() as session:
                return fn(session)

        try:
            return self._retrying()(run)
        except SQLAlchemyError as e:
            logger.error(f"Offer lookup failed ({description}): {_error_summary(e)} pgcode={_pgcode(e)}")
            if _pgcode(e) == QUERY_CANCELED_PGCODE:
                raise SearchTimeoutError("Offer lookup timed out", cause=e) from e
            raise StoreError(cause=e) from e
