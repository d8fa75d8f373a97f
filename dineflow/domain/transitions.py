"""Generic finite-state transition checks."""

from __future__ import annotations

from enum import Enum
from typing import Any, Mapping, TypeVar

from ..errors import InvalidRequest, InvalidTransition

S = TypeVar("S", bound=Enum)


def can_transition(table: Mapping[S, frozenset[S]], src: S, dst: S) -> bool:
    """Return ``True`` if ``table`` allows moving from ``src`` to ``dst``."""

    return dst in table.get(src, frozenset())


def check_transition(
    table: Mapping[S, frozenset[S]],
    src: S,
    dst: S,
    *,
    entity: str,
    entity_id: Any,
) -> None:
    """Raise :class:`InvalidTransition` unless ``src`` -> ``dst`` is legal."""

    if not can_transition(table, src, dst):
        raise InvalidTransition(
            f"{entity} {entity_id} cannot move from {src.value} to {dst.value}",
            details={
                "entity": entity,
                "id": entity_id,
                "from": src.value,
                "to": dst.value,
            },
        )


def parse_status(enum_cls: type[S], value: Any) -> S:
    """Return ``value`` as a member of ``enum_cls``.

    Accepts members, their values (``"confirmed"``) or names (``"CONFIRMED"``).
    """

    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        for member in enum_cls:
            if value in (member.value, member.name):
                return member
    raise InvalidRequest(
        f"unknown {enum_cls.__name__} {value!r}",
        details={"status": value, "allowed": ",".join(m.value for m in enum_cls)},
    )
