"""Host integration seam.

The bridge elements only need three things from a host: input values
transferred in before a tick, writable outputs, and a tick callback.
``PropertyStore`` and ``ElementHost`` provide an in-memory host so the
elements can run standalone or under test.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Protocol, Self, runtime_checkable

__all__ = ["Element", "ElementHost", "Output", "PropertyOutput", "PropertyStore"]

logger = logging.getLogger("tickbridge.host")


@runtime_checkable
class Output[T](Protocol):
    """A bound output property. Unbound outputs are represented by ``None``."""

    def write(self, value: T) -> None: ...


@runtime_checkable
class Element(Protocol):
    """Anything the host can tick and remove."""

    inputs: Any

    def tick(self) -> None: ...

    def close(self) -> None: ...


class PropertyStore:
    """In-memory name/value store standing in for the host's variables.

    Examples
    --------
    >>> store = PropertyStore({"Send": False})
    >>> out = store.output("Status")
    >>> out.write(2)
    >>> store.get("Status")
    2
    """

    def __init__(self, values: dict[str, Any] | None = None) -> None:
        self._values: dict[str, Any] = dict(values or {})

    def get(self, name: str, default: Any = None) -> Any:
        return self._values.get(name, default)

    def set(self, name: str, value: Any) -> None:
        self._values[name] = value

    def __contains__(self, name: object) -> bool:
        return name in self._values

    def output(self, name: str) -> PropertyOutput:
        """Return an ``Output`` that writes into property *name*."""
        return PropertyOutput(self, name)


@dataclass(frozen=True)
class PropertyOutput:
    """``Output`` writing to one property of a ``PropertyStore``."""

    store: PropertyStore
    name: str

    def write(self, value: Any) -> None:
        self.store.set(self.name, value)


class ElementHost:
    """Ticks a set of elements against a ``PropertyStore``.

    Each element is registered with an input map from input field names to
    property names. On every ``tick()`` the mapped properties present in
    the store are copied onto ``element.inputs`` before the element ticks.

    Parameters
    ----------
    store : PropertyStore
        Source of input values.

    Examples
    --------
    >>> store = PropertyStore({"Trigger": False})
    >>> with ElementHost(store) as host:
    ...     sender = host.add(DatagramSender(), {"send_trigger": "Trigger"})
    ...     store.set("Trigger", True)
    ...     host.tick()
    """

    def __init__(self, store: PropertyStore) -> None:
        self._store = store
        self._elements: dict[int, tuple[Element, dict[str, str]]] = {}

    @property
    def store(self) -> PropertyStore:
        return self._store

    @property
    def elements(self) -> list[Element]:
        return [element for element, _ in self._elements.values()]

    def add[E: Element](self, element: E, input_map: dict[str, str] | None = None) -> E:
        """Register *element*; returns it for chaining."""
        mapping = dict(input_map or {})
        for field_name in mapping:
            if not hasattr(element.inputs, field_name):
                msg = f"{type(element.inputs).__name__} has no input {field_name!r}"
                raise ValueError(msg)
        self._elements[id(element)] = (element, mapping)
        return element

    def remove(self, element: Element) -> None:
        """Unregister *element* and release its resources."""
        entry = self._elements.pop(id(element), None)
        if entry is not None:
            entry[0].close()

    def transfer_in(self, element: Element, input_map: dict[str, str]) -> None:
        for field_name, prop in input_map.items():
            if prop in self._store:
                setattr(element.inputs, field_name, self._store.get(prop))

    def tick(self) -> None:
        for element, input_map in list(self._elements.values()):
            self.transfer_in(element, input_map)
            element.tick()

    def close(self) -> None:
        while self._elements:
            _, (element, _) = self._elements.popitem()
            element.close()
        logger.debug("Host closed")

    def __enter__(self) -> Self:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()
