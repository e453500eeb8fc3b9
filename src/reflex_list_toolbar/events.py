"""Minimal fire-and-forget event channel used for every controller output."""

from collections.abc import Callable
from typing import Any


class Signal:
    """A named list of subscriber callbacks.

    Slots are called synchronously, in connection order, with the
    arguments passed to :meth:`emit`.  Emission is fire-and-forget: return
    values are ignored and nothing is acknowledged back to the emitter.
    """

    def __init__(self, name: str = "") -> None:
        self.name = name
        self._slots: list[Callable[..., Any]] = []

    def connect(self, slot: Callable[..., Any]) -> Callable[..., Any]:
        """Subscribe *slot*.  Returns it so this works as a decorator."""
        self._slots.append(slot)
        return slot

    def disconnect(self, slot: Callable[..., Any]) -> None:
        if slot in self._slots:
            self._slots.remove(slot)

    def emit(self, *args: Any) -> None:
        # Copy so slots may disconnect themselves while being called.
        for slot in list(self._slots):
            slot(*args)

    def __len__(self) -> int:
        return len(self._slots)

    def __repr__(self) -> str:
        return f"Signal({self.name!r}, slots={len(self._slots)})"
