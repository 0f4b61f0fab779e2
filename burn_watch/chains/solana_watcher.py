from __future__ import annotations

import threading
from dataclasses import dataclass, field, replace
from typing import Callable, TypeVar

from loguru import logger
from solana.rpc.api import Client

from burn_watch.backoff import Backoff
from burn_watch.chains.solana import SignatureScanner, TransactionFetcher
from burn_watch.config import AppSettings
from burn_watch.db import CheckpointStore, make_session_factory
from burn_watch.decoding.instructions import decode, matches_mint
from burn_watch.dedup import DedupTracker
from burn_watch.errors import (
    BurnWatchError,
    ConfigurationError,
    MalformedTransaction,
    TransactionNotFound,
    TransientRpcError,
)
from burn_watch.models import BurnEvent, Cursor, SignatureInfo, Transaction
from burn_watch.providers.solana_rpc import SolanaRpc
from burn_watch.sinks import Sink, build_sinks

T = TypeVar("T")


class ShutdownRequested(BurnWatchError):
    """Raised inside a cycle when a stop was requested during a wait."""


@dataclass
class PollState:
    cursor: Cursor | None = None
    tracker: DedupTracker = field(default_factory=DedupTracker)
    # Set while an older range is still being drained after a capped scan
    head: Cursor | None = None
    gap_before: str | None = None


@dataclass
class CycleResult:
    state: PollState
    events: list[BurnEvent]
    scanned: int = 0
    aborted: bool = False


@dataclass
class BurnWatcher:
    settings: AppSettings
    scanner: SignatureScanner
    fetcher: TransactionFetcher
    sinks: list[Sink]
    backoff: Backoff = field(default_factory=Backoff)
    checkpoints: CheckpointStore | None = None
    stop_event: threading.Event = field(default_factory=threading.Event)
    # Returns True when the wait was cut short by a stop request
    wait: Callable[[float], bool] | None = None

    @classmethod
    def create(cls, settings: AppSettings) -> BurnWatcher:
        settings.ensure_valid()
        if settings.check_endpoint:
            health = Client(settings.sol_rpc_url, timeout=settings.request_timeout_sec)
            if not health.is_connected():
                raise ConfigurationError(f"RPC endpoint unreachable: {settings.sol_rpc_url}")
        rpc = SolanaRpc(settings.sol_rpc_url, timeout=settings.request_timeout_sec)
        SessionFactory = None
        if settings.persist_cursor or "database" in settings.sink_names():
            SessionFactory = make_session_factory(settings.database_url)
        return cls(
            settings=settings,
            scanner=SignatureScanner(
                client=rpc,
                page_limit=settings.scan_page_limit,
                max_pages=settings.scan_max_pages,
                initial_lookback=settings.initial_lookback,
                commitment=settings.commitment,
            ),
            fetcher=TransactionFetcher(client=rpc, commitment=settings.commitment),
            sinks=build_sinks(settings, SessionFactory),
            backoff=Backoff.from_settings(settings),
            checkpoints=CheckpointStore(SessionFactory) if settings.persist_cursor else None,
        )

    @property
    def mint(self) -> str:
        return self.settings.mint_address

    def stop(self) -> None:
        self.stop_event.set()

    def initial_state(self) -> PollState:
        cursor = self.checkpoints.load(self.mint) if self.checkpoints else None
        if cursor:
            logger.info("Resuming from checkpoint {} (slot {})", cursor.signature, cursor.slot)
        return PollState(cursor=cursor, tracker=DedupTracker(self.settings.dedup_capacity))

    def run(self, state: PollState | None = None) -> PollState:
        logger.info("Starting burn watcher: {} mint {}", self.settings.sol_rpc_url, self.mint)
        state = state or self.initial_state()
        while not self.stop_event.is_set():
            try:
                result = self.cycle(state)
                state = result.state
                if result.scanned:
                    logger.info(
                        "Cycle done: {} signature(s), {} burn(s), cursor {}",
                        result.scanned,
                        len(result.events),
                        state.cursor.signature if state.cursor else None,
                    )
                if result.aborted:
                    break
            except KeyboardInterrupt:
                logger.info("Burn watcher interrupted; shutting down.")
                break
            except Exception as e:
                logger.exception("Burn watcher error: {}", e)
            if self._wait(self.settings.poll_interval_sec):
                break
        logger.info("Burn watcher stopped")
        return state

    def cycle(self, state: PollState) -> CycleResult:
        """
        One scan-fetch-decode-dedup-emit pass. The cursor in the returned state
        moves past the batch only when every signature in it was processed.
        The input state is left untouched; the returned one has its own tracker.

        When a scan hits the page cap the newest signatures are processed first
        and the older remainder is drained on later cycles (`gap_before`); the
        cursor jumps to `head` only once that range is empty.
        """
        try:
            result = self._retry(
                "scan",
                lambda: self.scanner.scan_range(self.mint, state.cursor, before=state.gap_before),
            )
        except ShutdownRequested:
            return CycleResult(state=state, events=[], aborted=True)
        batch = result.signatures
        tracker = state.tracker.copy()

        events: list[BurnEvent] = []
        for info in batch:
            if self.stop_event.is_set():
                return CycleResult(
                    state=replace(state, tracker=tracker), events=events, scanned=len(batch), aborted=True
                )
            if tracker.seen(info.signature):
                continue
            try:
                events.extend(self._process(info))
            except ShutdownRequested:
                return CycleResult(
                    state=replace(state, tracker=tracker), events=events, scanned=len(batch), aborted=True
                )
            tracker.mark(info.signature)

        if result.truncated:
            newest = batch[-1]
            head = state.head or Cursor(signature=newest.signature, slot=newest.slot)
            logger.warning(
                "Backlog past {} pages; holding cursor at {} until older signatures are read",
                self.scanner.max_pages,
                state.cursor.signature if state.cursor else None,
            )
            new_state = replace(state, tracker=tracker, head=head, gap_before=batch[0].signature)
            return CycleResult(state=new_state, events=events, scanned=len(batch))
        if state.gap_before is not None:
            new_state = replace(state, tracker=tracker, cursor=state.head, head=None, gap_before=None)
        elif batch:
            last = batch[-1]
            new_state = replace(state, tracker=tracker, cursor=Cursor(signature=last.signature, slot=last.slot))
        else:
            return CycleResult(state=replace(state, tracker=tracker), events=[])

        if self.checkpoints:
            try:
                self.checkpoints.save(self.mint, new_state.cursor)
            except Exception as e:
                logger.exception("Checkpoint save failed: {}", e)
        return CycleResult(state=new_state, events=events, scanned=len(batch))

    def _process(self, info: SignatureInfo) -> list[BurnEvent]:
        if info.err is not None:
            logger.debug("Skip failed transaction {}", info.signature)
            return []
        try:
            tx = self._retry(f"fetch {info.signature}", lambda: self.fetcher.fetch(info.signature))
        except TransactionNotFound as e:
            logger.warning("Skipping {}: {}", info.signature, e)
            return []
        except MalformedTransaction as e:
            logger.warning("Skipping malformed transaction {}: {}", info.signature, e)
            return []
        events = self.burns_in(tx)
        for ev in events:
            self._emit(ev)
        return events

    def burns_in(self, tx: Transaction) -> list[BurnEvent]:
        if tx.failed:
            return []
        programs = self.settings.token_programs()
        out: list[BurnEvent] = []
        for ix in tx.instructions:
            op = decode(ix.program_id, ix.accounts, ix.data, programs)
            if matches_mint(op, self.mint):
                out.append(BurnEvent.from_operation(tx, ix, op))  # type: ignore[arg-type]
        return out

    def _emit(self, event: BurnEvent) -> None:
        logger.info(
            "Burn detected: tx={} source={} amount={}",
            event.signature,
            event.source_account,
            event.amount,
        )
        for sink in self.sinks:
            try:
                sink.emit(event)
            except Exception as e:
                logger.exception("Sink {} failed for {}: {}", type(sink).__name__, event.signature, e)

    def _retry(self, label: str, fn: Callable[[], T]) -> T:
        delays = self.backoff.delays()
        while True:
            try:
                return fn()
            except TransientRpcError as e:
                delay = next(delays)
                logger.warning("{} failed ({}); retrying in {:.1f}s", label, e, delay)
                if self._wait(delay):
                    raise ShutdownRequested(label) from e

    def _wait(self, seconds: float) -> bool:
        if self.wait is not None:
            return self.wait(seconds)
        return self.stop_event.wait(seconds)
