"""Filter composition: UI-level filter events folded into one value per filter.

Three shapes of filter are handled:

* **Exclusive** (radio / single select): at most one selected option per
  definition.  A new choice replaces the previous one *in the same slot*
  of the selected-filter list so chip ordering stays put.
* **Checkbox** (no delimiter): every checked option gets its own
  selected-filter entry; the definition's current value is the most
  recently applied option that is still checked.
* **Delimited** (multi value): the current value is rebuilt from scratch
  from every selected entry of the definition, in list order, joined by
  the delimiter.  Removing an option rebuilds rather than editing the
  string, so the folded order always matches the chip order.

Every mutating operation ends by publishing the folded values on
:attr:`FilterComposer.resync_requested`; the navigation synchronizer
mirrors them into the navigation state.  Removing a custom entry publishes
them on :attr:`FilterComposer.filters_mirrored` instead, which updates the
navigation state without a navigation change notification.
"""

from collections.abc import Iterable, Sequence

from reflex.utils import console

from reflex_list_toolbar.events import Signal
from reflex_list_toolbar.models import FilterDefinition, FilterOption, SelectedFilter

_DEFAULT_FILTER_OPTION_THRESHOLD: int = 5


def fold_values(values: Iterable[str], delimiter: str) -> str | None:
    """Join option *values* with *delimiter*; ``None`` when there are none."""
    folded = delimiter.join(values)
    return folded or None


def split_value(value: str | None, delimiter: str | None) -> list[str]:
    """Split a folded filter value back into its option values."""
    if not value:
        return []
    if not delimiter:
        return [value]
    return value.split(delimiter)


class FilterComposer:
    """Owns the filter definitions and the list of selected filters.

    Args:
        filters: Initial filter definitions.
        hidden_filters: Names of filters that exist but are not offered
            in the toolbar (they still take part in the query).
        option_threshold: Definitions with more options than this are
            presented as (multi-)select lists instead of radios or
            checkboxes.
    """

    def __init__(
        self,
        filters: Sequence[FilterDefinition] | None = None,
        *,
        hidden_filters: Iterable[str] = (),
        option_threshold: int = _DEFAULT_FILTER_OPTION_THRESHOLD,
    ) -> None:
        self._filters: dict[str, FilterDefinition] = {}
        self._selected: list[SelectedFilter] = []
        self.hidden_filters: set[str] = set(hidden_filters)
        self.option_threshold = option_threshold
        self.resync_requested = Signal("resync_requested")
        self.custom_filter_removed = Signal("custom_filter_removed")
        self.filters_mirrored = Signal("filters_mirrored")
        if filters:
            self.load(filters)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def filters(self) -> list[FilterDefinition]:
        return list(self._filters.values())

    @property
    def visible_filters(self) -> list[FilterDefinition]:
        return [f for f in self._filters.values() if f.name not in self.hidden_filters]

    @property
    def selected_filters(self) -> list[SelectedFilter]:
        return list(self._selected)

    @property
    def has_custom_filters(self) -> bool:
        return any(sf.is_custom for sf in self._selected)

    def get(self, filter: FilterDefinition | str) -> FilterDefinition:
        """Resolve a definition by object or name.

        Raises:
            KeyError: If no definition with that name is loaded.
        """
        name = filter if isinstance(filter, str) else filter.name
        try:
            return self._filters[name]
        except KeyError:
            raise KeyError(f"Unknown filter: {name!r}") from None

    def values(self) -> dict[str, str]:
        """Folded current values, only for filters that have one."""
        return {
            name: definition.current_value
            for name, definition in self._filters.items()
            if definition.current_value
        }

    def multi_select_current_value(self, filter: FilterDefinition | str) -> list[str]:
        definition = self.get(filter)
        if not definition.delimiter:
            return []
        return split_value(definition.current_value, definition.delimiter)

    def uses_select_list(self, filter: FilterDefinition | str) -> bool:
        return len(self.get(filter).options) > self.option_threshold

    def is_option_selected(self, filter: FilterDefinition | str, option_value: str) -> bool:
        return self._find_index(self.get(filter).name, option_value) >= 0

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def load(self, filters: Sequence[FilterDefinition]) -> None:
        """Replace the definitions (new dataset).  Does not resync."""
        self._filters = {f.name: f for f in filters}
        self._selected = []
        for definition in self._filters.values():
            definition.current_value = None

    def apply_option(
        self,
        filter: FilterDefinition | str,
        option_value: str,
        is_set: bool = True,
    ) -> None:
        """Check or uncheck one option of a checkbox or exclusive filter."""
        definition = self.get(filter)
        if definition.exclusive:
            if is_set:
                self.select_option(definition, option_value)
            else:
                self.remove_selected_filter(definition, emit=False)
                self._resync()
            return

        if is_set:
            option = definition.find_option(option_value)
            if option is None:
                console.debug(
                    f"[ListToolbar] filter '{definition.name}': no option {option_value!r}"
                )
                return
            if self._find_index(definition.name, option.value) >= 0:
                return
            self._selected.append(SelectedFilter(filter=definition, option=option))
            self._refresh_current_value(definition)
        else:
            self.remove_selected_filter(definition, emit=False, option_value=option_value)
        self._resync()

    def select_option(self, filter: FilterDefinition | str, option_value: str | None) -> None:
        """Radio / single-select change.  ``None`` clears the filter."""
        definition = self.get(filter)
        option = definition.find_option(option_value)
        if option is None and option_value is not None:
            console.debug(
                f"[ListToolbar] filter '{definition.name}': no option {option_value!r}"
            )
            return

        index = self._find_index(definition.name)
        if option is None:
            if index >= 0:
                del self._selected[index]
        else:
            entry = SelectedFilter(filter=definition, option=option)
            if index >= 0:
                self._selected[index] = entry
            else:
                self._selected.append(entry)
        self._refresh_current_value(definition)
        self._resync()

    def apply_multi_selection(
        self,
        filter: FilterDefinition | str,
        values: Iterable[str],
    ) -> None:
        """Replace every selected option of *filter* with *values*."""
        definition = self.get(filter)
        self._selected = [sf for sf in self._selected if sf.name != definition.name]
        for value in values:
            option = definition.find_option(value)
            if option is None:
                console.debug(f"[ListToolbar] filter '{definition.name}': no option {value!r}")
                continue
            self._selected.append(SelectedFilter(filter=definition, option=option))
        self._refresh_current_value(definition)
        self._resync()

    def remove_selected_filter(
        self,
        filter: FilterDefinition | str,
        emit: bool = True,
        option_value: str | None = None,
        selected: SelectedFilter | None = None,
    ) -> bool:
        """Remove one selected entry of *filter*.

        Multi-valued definitions match by name and *option_value* (when
        given); exclusive ones by name alone.  A given *selected* entry is
        matched by identity.  Removing a custom entry
        notifies :attr:`custom_filter_removed` instead of resyncing --
        the collaborator that injected it reacts on its own.

        Returns:
            ``True`` if an entry was removed.
        """
        if selected is not None and selected.filter.name not in self._filters:
            return self._remove_unregistered_custom(selected)

        definition = self.get(filter)
        if selected is not None:
            index = next((i for i, sf in enumerate(self._selected) if sf is selected), -1)
        else:
            match_value = option_value if definition.is_multi_valued else None
            index = self._find_index(definition.name, match_value)
        if index < 0:
            return False

        removed = self._selected.pop(index)
        self._refresh_current_value(definition)
        if removed.is_custom:
            self.filters_mirrored.emit(self.values())
            self.custom_filter_removed.emit(removed)
            return True
        if emit:
            self._resync()
        return True

    def add_custom_filter(
        self,
        filter: FilterDefinition,
        option: FilterOption,
    ) -> SelectedFilter:
        """Inject a selected filter owned by an outside collaborator.

        The definition does not have to be one of the loaded filters; if
        it is, its current value and the navigation state follow along.
        """
        entry = SelectedFilter(filter=filter, option=option, is_custom=True)
        self._selected.append(entry)
        if filter.name in self._filters:
            self._refresh_current_value(self._filters[filter.name])
            self._resync()
        return entry

    def clear_all(self) -> None:
        """Drop every selected filter and current value, then resync once."""
        for definition in self._filters.values():
            definition.current_value = None
        had_custom = self.has_custom_filters
        self._selected = []
        if had_custom:
            self.custom_filter_removed.emit(None)
        self._resync()

    def apply_initial_values(self) -> bool:
        """Seed selected filters from each definition's initial value.

        Resyncs exactly once, and only if anything was seeded.

        Returns:
            ``True`` if at least one filter received an initial value.
        """
        seeded = False
        for definition in self._filters.values():
            initial = definition.initial_value
            if not initial:
                continue
            for value in split_value(initial, definition.delimiter):
                option = definition.find_option(value)
                if option is not None:
                    self._selected.append(SelectedFilter(filter=definition, option=option))
            self._refresh_current_value(definition)
            if not definition.current_value:
                # No matching option: the value still applies, just without a chip.
                definition.current_value = initial
            seeded = True
        if seeded:
            console.debug(f"[ListToolbar] initial filter values: {self.values()}")
            self._resync()
        return seeded

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _find_index(self, name: str, option_value: str | None = None) -> int:
        for index, sf in enumerate(self._selected):
            if sf.name != name:
                continue
            if option_value is None or sf.value == option_value:
                return index
        return -1

    def _refresh_current_value(self, definition: FilterDefinition) -> None:
        entries = [sf for sf in self._selected if sf.name == definition.name]
        if definition.delimiter:
            definition.current_value = fold_values(
                (sf.value for sf in entries), definition.delimiter
            )
        elif entries:
            definition.current_value = entries[-1].value
        else:
            definition.current_value = None

    def _remove_unregistered_custom(self, selected: SelectedFilter) -> bool:
        for index, sf in enumerate(self._selected):
            if sf is selected:
                del self._selected[index]
                if sf.is_custom:
                    self.custom_filter_removed.emit(sf)
                return True
        return False

    def _resync(self) -> None:
        self.resync_requested.emit(self.values())
