"""The navigation state and the local / remote paging decision.

:class:`NavigationSynchronizer` owns the single :class:`NavigationState`
and, on every change, either re-slices an in-memory snapshot (local mode)
or forwards the state to a remote data source that returns one page
(remote mode).  Both modes look the same from outside: one
``navigation_state_changed`` emission per logical action, followed by a
``page_changed`` once the replacement page is available.
"""

import time
from collections.abc import Mapping, Sequence
from typing import Any, Protocol

from reflex.utils import console

from reflex_list_toolbar.events import Signal
from reflex_list_toolbar.models import DataPage, FilterDefinition, NavigationState
from reflex_list_toolbar.scheduling import Handle, Scheduler

_DEFAULT_SEARCH_DEBOUNCE: float = 0.3


class RemoteDataSource(Protocol):
    """Backend that serves one page per navigation state."""

    async def load(self, state: NavigationState) -> DataPage: ...


class RowFilter(Protocol):
    """Predicate evaluator used in local mode.

    Returns the entities matching *state*'s filters and search, in the
    order requested by its sort model.
    """

    def __call__(
        self,
        entities: Sequence[Any],
        state: NavigationState,
        filters: Sequence[FilterDefinition],
    ) -> list[Any]: ...


class NavigationSynchronizer:
    """Keeps the navigation state and the materialized page in step.

    Args:
        scheduler: Runs the deferred re-slice after a dataset swap, the
            search debounce timer and remote fetch tasks.
        local: ``True`` to page / filter an in-memory snapshot, ``False``
            to delegate to *remote_source*.
        remote_source: Remote page provider.  In remote mode without one,
            the host is expected to react to :attr:`changed` itself and
            push the new page back through :meth:`refresh`.
        row_filter: Local-mode predicate evaluator.  Without one, local
            mode only slices.
        debounce_seconds: Quiet window for :meth:`set_search_text`.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        *,
        local: bool = False,
        remote_source: RemoteDataSource | None = None,
        row_filter: RowFilter | None = None,
        debounce_seconds: float = _DEFAULT_SEARCH_DEBOUNCE,
    ) -> None:
        self._scheduler = scheduler
        self.local = local
        self.remote_source = remote_source
        self.row_filter = row_filter
        self.debounce_seconds = debounce_seconds

        self.state = NavigationState()
        self.page = DataPage()
        self.filter_definitions: list[FilterDefinition] = []

        self._snapshot: list[Any] = []
        self._snapshot_limit_reached = False
        self._generation = 0
        self._applied_search = ""
        self._search_timer: Handle | None = None

        self.changed = Signal("navigation_state_changed")
        self.page_changed = Signal("page_changed")
        self.search_submitted = Signal("search")

    @property
    def snapshot_size(self) -> int:
        return len(self._snapshot)

    # ------------------------------------------------------------------
    # Dataset lifecycle
    # ------------------------------------------------------------------

    def reset(self, state: NavigationState, page: DataPage) -> None:
        """Adopt a new logical dataset.

        In local mode the full dataset is snapshotted now and sliced one
        scheduling tick later, so the rest of the synchronous settings
        processing finishes first.  A later reset supersedes a slice that
        has not run yet.
        """
        self._cancel_search_timer()
        self.state = state.copy()
        self._applied_search = self.state.search
        if self.local:
            self._take_snapshot(page)
            self._schedule_slice()
        else:
            self.page = page

    def refresh(self, page: DataPage) -> None:
        """Accept fresh data for the *same* logical dataset."""
        if self.local:
            self._take_snapshot(page)
            self._schedule_slice()
        else:
            self.page = page

    # ------------------------------------------------------------------
    # State changes
    # ------------------------------------------------------------------

    def navigate(self, start_index: int | None = None, page_size: int | None = None) -> None:
        """Paging change: move the window and/or resize it."""
        changes: dict[str, int] = {}
        if start_index is not None:
            changes["start_index"] = start_index
        if page_size is not None:
            changes["page_size"] = page_size
        self.state = self.state.copy(**changes)
        self._commit()

    def set_navigation_state(self, state: NavigationState) -> None:
        """Adopt a whole navigation state coming from a paginator or table."""
        incoming = state.copy()
        if incoming.search != self.state.search or incoming.filters != self.state.filters:
            incoming.start_index = 0
        self.state = incoming
        self._applied_search = incoming.search
        self._commit()

    def set_sort(self, order_by: Sequence[Mapping[str, str]]) -> None:
        self.state = self.state.copy(order_by=[dict(entry) for entry in order_by])
        self._commit()

    def apply_filters(self, values: Mapping[str, str]) -> None:
        """Mirror folded filter values into the state and restart at 0."""
        filters = {name: value for name, value in values.items() if value}
        self.state = self.state.copy(filters=filters, start_index=0)
        self._commit()

    def mirror_filters(self, values: Mapping[str, str]) -> None:
        """Record folded filter values without re-querying or notifying."""
        self.state.filters = {name: value for name, value in values.items() if value}

    def regroup(self) -> None:
        """Grouping changed: the cursor is invalid, start over."""
        self.state = self.state.copy(start_index=0)
        self._commit()

    def set_search_text(self, text: str) -> None:
        """Debounced search input; only the last value in a quiet window counts."""
        self._cancel_search_timer()
        self._search_timer = self._scheduler.call_later(
            self.debounce_seconds, self._apply_debounced_search, text
        )

    def submit_search(self, text: str) -> None:
        """Apply a search immediately (search button / enter key)."""
        self._cancel_search_timer()
        self._applied_search = text
        self.state = self.state.copy(search=text, start_index=0)
        self.search_submitted.emit(text)
        self._commit()

    async def reload(self) -> DataPage:
        """Fetch the page for the current state from the remote source.

        Raises:
            RuntimeError: If no remote source is configured.
        """
        if self.remote_source is None:
            raise RuntimeError("No remote data source configured")
        return await self._fetch(self.state.copy())

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _apply_debounced_search(self, text: str) -> None:
        self._search_timer = None
        if text == self._applied_search:
            return
        self.submit_search(text)

    def _cancel_search_timer(self) -> None:
        if self._search_timer is not None:
            self._search_timer.cancel()
            self._search_timer = None

    def _commit(self) -> None:
        self._dispatch()
        self.changed.emit(self.state.copy())

    def _dispatch(self) -> None:
        if self.local:
            # Supersedes any slice still pending from a dataset swap.
            self._generation += 1
            self._slice()
        elif self.remote_source is not None:
            self._scheduler.create_task(self._fetch(self.state.copy()))

    def _take_snapshot(self, page: DataPage) -> None:
        self._snapshot = list(page.data)
        self._snapshot_limit_reached = page.is_limit_reached

    def _schedule_slice(self) -> None:
        self._generation += 1
        self._scheduler.call_soon(self._slice_if_current, self._generation)

    def _slice_if_current(self, generation: int) -> None:
        if generation == self._generation:
            self._slice()

    def _slice(self) -> None:
        t0 = time.perf_counter()
        if self.row_filter is not None:
            rows = list(self.row_filter(self._snapshot, self.state, self.filter_definitions))
        else:
            rows = self._snapshot
        start = self.state.start_index
        end = min(start + self.state.page_size, len(rows))
        self.page = DataPage(
            data=list(rows[start:end]),
            total_count=len(rows),
            is_limit_reached=self._snapshot_limit_reached,
        )
        elapsed_ms = (time.perf_counter() - t0) * 1000
        console.debug(
            f"[ListToolbar] local slice: start={start}, size={self.state.page_size}, "
            f"slice={len(self.page.data)}, total={len(rows)}, elapsed={elapsed_ms:.1f}ms"
        )
        self.page_changed.emit(self.page)

    async def _fetch(self, state: NavigationState) -> DataPage:
        t0 = time.perf_counter()
        page = await self.remote_source.load(state)
        # No cancellation: whichever response arrives last wins.
        self.page = page
        elapsed_ms = (time.perf_counter() - t0) * 1000
        console.debug(
            f"[ListToolbar] remote page: start={state.start_index}, "
            f"rows={len(page.data)}, total={page.total_count}, elapsed={elapsed_ms:.1f}ms"
        )
        self.page_changed.emit(page)
        return page
