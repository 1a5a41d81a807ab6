"""
Selection Cart

The sponsor's in-progress selection of children, modelled as an
immutable value passed through calls instead of ambient session state.
Views load it from and store it back into the Django session.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, MutableMapping

from shared.domain.base import ValueObject

SESSION_KEY = "sponsorship_cart"


@dataclass(frozen=True)
class SelectionCart(ValueObject):
    """Ordered set of child ids; first selection wins the position."""

    child_ids: tuple[int, ...] = ()

    @classmethod
    def from_ids(cls, child_ids: Iterable[int]) -> "SelectionCart":
        ordered: list[int] = []
        for child_id in child_ids:
            child_id = int(child_id)
            if child_id not in ordered:
                ordered.append(child_id)
        return cls(tuple(ordered))

    @classmethod
    def from_session(cls, session: MutableMapping) -> "SelectionCart":
        return cls.from_ids(session.get(SESSION_KEY, []))

    def to_session(self, session: MutableMapping) -> None:
        if self.child_ids:
            session[SESSION_KEY] = list(self.child_ids)
        else:
            session.pop(SESSION_KEY, None)

    def add(self, child_id: int) -> "SelectionCart":
        return self.from_ids((*self.child_ids, child_id))

    def remove(self, child_id: int) -> "SelectionCart":
        return SelectionCart(tuple(c for c in self.child_ids if c != int(child_id)))

    def clear(self) -> "SelectionCart":
        return SelectionCart()

    def __contains__(self, child_id: object) -> bool:
        return child_id in self.child_ids

    def __len__(self) -> int:
        return len(self.child_ids)

    @property
    def is_empty(self) -> bool:
        return not self.child_ids
