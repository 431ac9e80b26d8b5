"""
Editor Liveness Tracker: is the external editor open on a project?

Answers are advisory. Every failure degrades to ``EditorStatus.UNKNOWN``
and nothing here raises into the callers that annotate batches or records.

Cache entries are immutable ``(status, checked_at)`` pairs; a refresh swaps
the whole entry so readers never see a status paired with the wrong time.
Entries older than the freshness window are never served.
"""
import time
import asyncio
import logging
from typing import Any, NamedTuple, Optional
from collections.abc import Awaitable, Callable, Iterable

from . import conf
from .models import EditorStatus

logger = logging.getLogger("keykeeper.liveness")

Probe = Callable[[str], Awaitable[Any]]


class _CacheEntry(NamedTuple):
    status: EditorStatus
    checked_at: float


class EditorLivenessTracker:
    """Cached, coalescing editor status lookups keyed by project path.

    Args:
        probe: coroutine function answering ``"open"``, ``"closed"`` or
            ``"unknown"`` for a project path; usually the backend's
            ``get_project_editor_status``.
        freshness: seconds a probed status stays valid; also the polling
            interval.
        probe_timeout: upper bound for a single probe.
        enabled: when False no probe is ever issued.
        clock: monotonic time source.
    """

    def __init__(
        self,
        probe: Probe,
        freshness: float = conf.POLL_INTERVAL,
        probe_timeout: float = conf.PROBE_TIMEOUT,
        enabled: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._probe = probe
        self._freshness = freshness
        self._probe_timeout = probe_timeout
        self._enabled = enabled
        self._clock = clock
        self._cache: dict[str, _CacheEntry] = {}
        self._inflight: dict[str, asyncio.Future] = {}
        self._poller: Optional[asyncio.Task] = None
        self.probe_count = 0

    @classmethod
    def from_settings(cls, probe: Probe, settings: Any) -> "EditorLivenessTracker":
        vscode = settings.integrations.vscode
        return cls(
            probe,
            freshness=vscode.poll_interval,
            probe_timeout=vscode.probe_timeout,
            enabled=vscode.enabled,
        )

    @property
    def freshness(self) -> float:
        return self._freshness

    @property
    def running(self) -> bool:
        return self._poller is not None and not self._poller.done()

    def _fresh_entry(self, project_path: str) -> Optional[_CacheEntry]:
        entry = self._cache.get(project_path)
        if entry is None:
            return None
        if self._clock() - entry.checked_at >= self._freshness:
            return None
        return entry

    def peek(self, project_path: str) -> EditorStatus:
        """Cached status without probing; UNKNOWN once the entry is stale."""
        entry = self._fresh_entry(project_path)
        return entry.status if entry else EditorStatus.UNKNOWN

    async def get_status(self, project_path: str) -> EditorStatus:
        """Status for ``project_path``, probing only when the cache is stale.

        Concurrent callers for the same path share one in-flight probe.
        """
        if not self._enabled or not project_path:
            return EditorStatus.UNKNOWN
        entry = self._fresh_entry(project_path)
        if entry is not None:
            return entry.status
        pending = self._inflight.get(project_path)
        if pending is None:
            pending = asyncio.ensure_future(self._refresh(project_path))
            self._inflight[project_path] = pending
            pending.add_done_callback(
                lambda fut, path=project_path: self._forget(path, fut)
            )
        # shield: a cancelled caller must not cancel the probe others await
        return await asyncio.shield(pending)

    def _forget(self, project_path: str, fut: asyncio.Future) -> None:
        if self._inflight.get(project_path) is fut:
            del self._inflight[project_path]

    async def _refresh(self, project_path: str) -> EditorStatus:
        self.probe_count += 1
        try:
            answer = await asyncio.wait_for(
                self._probe(project_path), timeout=self._probe_timeout
            )
            status = EditorStatus.parse(answer)
        except asyncio.CancelledError:
            raise
        except Exception as err:
            logger.debug(
                "Editor status probe failed for %s: %s", project_path, err.__class__.__name__
            )
            status = EditorStatus.UNKNOWN
        self._cache[project_path] = _CacheEntry(status, self._clock())
        return status

    def invalidate(self, project_path: Optional[str] = None) -> None:
        """Drop cached statuses, for one path or all of them."""
        if project_path is None:
            self._cache.clear()
        else:
            self._cache.pop(project_path, None)

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------

    def start(self, paths: Callable[[], Iterable[str]]) -> None:
        """Refresh every path returned by ``paths`` once per freshness window."""
        if self.running:
            return
        self._poller = asyncio.ensure_future(self._poll(paths))
        logger.debug("Editor liveness polling started (every %.1fs)", self._freshness)

    async def stop(self) -> None:
        """Cancel the polling loop.

        Probes already in flight are left to finish; they are bounded by
        the probe timeout and other callers may be waiting on them.
        """
        poller, self._poller = self._poller, None
        if poller is not None and not poller.done():
            poller.cancel()
            try:
                await poller
            except asyncio.CancelledError:
                pass
        logger.debug("Editor liveness polling stopped")

    async def _poll(self, paths: Callable[[], Iterable[str]]) -> None:
        while True:
            try:
                targets = list(dict.fromkeys(paths()))
            except Exception:
                logger.exception("Could not collect project paths for liveness polling")
                targets = []
            if targets:
                await asyncio.gather(
                    *(self.get_status(path) for path in targets),
                    return_exceptions=True,
                )
            await asyncio.sleep(self._freshness)

    async def __aenter__(self) -> "EditorLivenessTracker":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.stop()
