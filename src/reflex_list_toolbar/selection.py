"""Selection tracking that is independent of paging.

The selection is keyed by entity identity, not by position, so a row
selected on page 2 is still selected after the user goes back to page 1,
and stays selected after a refresh that no longer contains it.  Only
:meth:`SelectionModel.unchecked`, :meth:`SelectionModel.toggle` and
:meth:`SelectionModel.clear` remove members.
"""

from collections.abc import Callable, Hashable, Iterable, Iterator
from contextlib import contextmanager
from typing import Any

from reflex.utils import console

from reflex_list_toolbar.events import Signal
from reflex_list_toolbar.models import SelectionChange
from reflex_list_toolbar.scheduling import Scheduler


def _identity(entity: Any) -> Hashable:
    return entity


class SelectionModel:
    """Multi-selection over opaque entities.

    Every mutation that actually changes membership publishes a
    :class:`SelectionChange` on :attr:`changed`, except while a bulk
    preselection is being applied (see :meth:`preselect`).

    Args:
        scheduler: Runs the deferred parts of :meth:`clear` and
            :meth:`preselect` after the current synchronous batch.
        key: Maps an entity to its identity.  Defaults to the entity
            itself, which then has to be hashable.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        key: Callable[[Any], Hashable] | None = None,
    ) -> None:
        self._scheduler = scheduler
        self._key = key or _identity
        self._selected: dict[Hashable, Any] = {}
        self._suspended = False
        self.changed = Signal("selection_changed")

    # -- reads ---------------------------------------------------------

    @property
    def selected(self) -> list[Any]:
        """Snapshot of the selected entities in selection order."""
        return list(self._selected.values())

    @property
    def keys(self) -> list[Hashable]:
        return list(self._selected)

    @property
    def is_suspended(self) -> bool:
        return self._suspended

    def is_selected(self, entity: Any) -> bool:
        return self._key(entity) in self._selected

    def __len__(self) -> int:
        return len(self._selected)

    def __iter__(self) -> Iterator[Any]:
        return iter(self.selected)

    # -- mutations -----------------------------------------------------

    def toggle(self, entity: Any) -> None:
        key = self._key(entity)
        if key in self._selected:
            removed = self._selected.pop(key)
            self._notify(removed=(removed,))
        else:
            self._selected[key] = entity
            self._notify(added=(entity,))

    def checked(self, entity: Any) -> None:
        key = self._key(entity)
        if key in self._selected:
            return
        self._selected[key] = entity
        self._notify(added=(entity,))

    def unchecked(self, entity: Any) -> None:
        key = self._key(entity)
        if key not in self._selected:
            return
        removed = self._selected.pop(key)
        self._notify(removed=(removed,))

    def check_all(self, entities: Iterable[Any]) -> None:
        """Add every entity not yet selected; one change for the batch."""
        added: list[Any] = []
        for entity in entities:
            key = self._key(entity)
            if key not in self._selected:
                self._selected[key] = entity
                added.append(entity)
        if added:
            self._notify(added=tuple(added))

    def uncheck_all(self, entities: Iterable[Any]) -> None:
        """Remove every given entity that is selected; one change for the batch."""
        removed: list[Any] = []
        for entity in entities:
            key = self._key(entity)
            if key in self._selected:
                removed.append(self._selected.pop(key))
        if removed:
            self._notify(removed=tuple(removed))

    def clear(self) -> None:
        """Empty the selection once the current synchronous batch is done.

        Row-click handlers still running in this batch see the old
        membership; the clear lands right after them.
        """
        self._scheduler.call_soon(self.clear_now)

    def clear_now(self) -> None:
        if not self._selected:
            return
        removed = tuple(self._selected.values())
        self._selected.clear()
        self._notify(removed=removed)

    def preselect(self, entities: Iterable[Any]) -> None:
        """Select *entities* programmatically without change notifications.

        Suspension starts immediately and ends after the deferred
        application, so nothing in between is reported either.
        """
        items = list(entities)
        self._suspended = True

        def apply() -> None:
            try:
                for entity in items:
                    self.checked(entity)
            finally:
                self._suspended = False
            console.debug(f"[ListToolbar] preselected {len(items)} item(s)")

        self._scheduler.call_soon(apply)

    @contextmanager
    def suspended(self):
        """Suppress change notifications for the duration of the block."""
        previous = self._suspended
        self._suspended = True
        try:
            yield self
        finally:
            self._suspended = previous

    def _notify(self, added: tuple[Any, ...] = (), removed: tuple[Any, ...] = ()) -> None:
        if self._suspended:
            return
        self.changed.emit(SelectionChange(added=added, removed=removed))
