"""
External Client Base - Abstract interface for per-kind reconcilers.

An external client observes, then either creates, updates, or deletes an
external resource so that it reflects the desired state of a record. Each
client is bound to one record class; the controller dispatches by class.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

from apis.common import ManagedResource

R = TypeVar("R", bound=ManagedResource)
T = TypeVar("T")


@dataclass
class ExternalObservation:
    """Result of an observe() call."""

    resource_exists: bool = False
    resource_up_to_date: bool = False
    # True when unset desired fields were filled from the observed resource,
    # meaning the record should be persisted.
    resource_late_initialized: bool = False


class ReconcileError(Exception):
    """
    Raised when a call to the external API fails.

    The message is a short static context naming the failed operation,
    followed by the cause.
    """

    def __init__(self, context: str, cause: Optional[Exception] = None):
        self.context = context
        self.cause = cause
        self.message = f"{context}: {cause}" if cause is not None else context
        super().__init__(self.message)


class LateInitializer:
    """
    Fills unset desired values from observed ones and remembers whether it
    changed anything.
    """

    def __init__(self):
        self.changed = False

    def value(self, desired: Optional[T], observed: Optional[T]) -> Optional[T]:
        """Return desired if set, otherwise observed."""
        if desired is not None or observed is None:
            return desired
        self.changed = True
        return observed

    def string(self, desired: str, observed: Optional[str]) -> str:
        """Like value(), for strings where "" means unset."""
        if desired or not observed:
            return desired
        self.changed = True
        return observed


class ExternalClient(ABC, Generic[R]):
    """
    Abstract base class for the reconciler of one resource kind.

    Implementations raise ReconcileError for any failed API call other than
    the not-found cases they document.
    """

    @property
    @abstractmethod
    def kind(self) -> str:
        """The record kind this client handles."""
        pass

    @abstractmethod
    async def observe(self, cr: R) -> ExternalObservation:
        """
        Observe the external resource of a record.

        Writes the observed state to the record status and late-initializes
        its desired parameters.

        Args:
            cr: The record to observe.

        Returns:
            ExternalObservation describing existence and up-to-date-ness.
        """
        pass

    @abstractmethod
    async def create(self, cr: R) -> None:
        """Create the external resource of a record."""
        pass

    @abstractmethod
    async def update(self, cr: R) -> None:
        """Update the external resource to match the record."""
        pass

    @abstractmethod
    async def delete(self, cr: R) -> None:
        """Delete the external resource. Deleting an absent resource succeeds."""
        pass
