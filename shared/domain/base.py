"""
Base Domain Classes

Building blocks shared by the domain apps:
- ValueObject: Immutable objects compared by value
- DomainEvent: Something that happened and must be announced after commit
"""

from abc import ABC
from dataclasses import asdict, dataclass, field
from datetime import datetime
from uuid import UUID, uuid4

from django.utils import timezone


@dataclass(frozen=True)
class ValueObject(ABC):
    """
    Base class for value objects

    Value objects are immutable and have no identity.
    Two value objects are equal if all their attributes are equal.
    """
    pass


@dataclass
class DomainEvent:
    """
    Base class for domain events

    Events are recorded on a unit of work while the transaction is open
    and handed to the message bus only after the commit succeeded.
    """
    event_id: UUID = field(default_factory=uuid4, kw_only=True)
    occurred_at: datetime = field(default_factory=timezone.now, kw_only=True)

    @property
    def name(self) -> str:
        return self.__class__.__name__

    def to_dict(self) -> dict:
        """Convert event to dictionary for serialization"""
        data = asdict(self)
        data['event_id'] = str(self.event_id)
        data['event_type'] = self.name
        data['occurred_at'] = self.occurred_at.isoformat()
        return data
