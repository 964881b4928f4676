"""
Reconciliation Controller - Drives records towards their desired state.

Similar to a Kubernetes managed resource reconciler: observe the external
resource, then create, update or delete it. Each record class is handled by
the external client registered for it.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Sequence, Type

from apis import KIND_ORDER, ManagedResource
from apis.common import (
    creating,
    deleting,
    reconcile_error,
    reconcile_success,
)
from config import ControllerConfig
from events import EventBus, EventType, ReconcileEvent
from reconcilers.base import ExternalClient, ExternalObservation, ReconcileError
from references import InMemoryResolver, ReferenceResolver, resolve_references

logger = logging.getLogger(__name__)


class ReconcileAction(Enum):
    """What a reconcile did to the external resource."""

    NONE = "none"
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"


@dataclass
class ReconcileResult:
    """Outcome of reconciling one record."""

    kind: str
    name: str
    success: bool
    action: ReconcileAction = ReconcileAction.NONE
    message: str = ""
    late_initialized: bool = False


class Controller:
    """
    Reconciles records against InfluxDB.

    Records are passed in by the caller and mutated in place: status,
    conditions, late-initialized parameters and external names are written
    back to the record objects.
    """

    def __init__(
        self,
        clients: Dict[Type[ManagedResource], ExternalClient],
        resolver: Optional[ReferenceResolver] = None,
        event_bus: Optional[EventBus] = None,
        config: Optional[ControllerConfig] = None,
    ):
        self.clients = clients
        self.resolver = resolver
        self.config = config or ControllerConfig()
        self.semaphore = asyncio.Semaphore(self.config.max_concurrent_reconciles)
        self._event_bus = event_bus

    def _client_for(self, record: ManagedResource) -> ExternalClient:
        """
        Get the external client registered for a record's class.

        Raises:
            ValueError: If no client handles the record's class
        """
        client = self.clients.get(type(record))
        if client is None:
            raise ValueError(
                f"No external client registered for {type(record).__name__}"
            )
        return client

    async def _publish(
        self, event_type: EventType, record: ManagedResource, message: str = ""
    ) -> None:
        if self._event_bus is None:
            return
        await self._event_bus.publish(
            ReconcileEvent.from_record(event_type, record, message)
        )

    def _prepare(
        self, record: ManagedResource, resolver: Optional[ReferenceResolver]
    ) -> None:
        if record.external_name_defaults_to_name and not record.get_external_name():
            record.set_external_name(record.metadata.name)

        resolver = resolver or self.resolver
        if resolver is not None:
            resolve_references(record, resolver)

    async def observe(
        self,
        record: ManagedResource,
        resolver: Optional[ReferenceResolver] = None,
    ) -> ExternalObservation:
        """
        Observe a record's external resource without changing it.

        Raises:
            ReconcileError: If the external resource cannot be observed
        """
        client = self._client_for(record)
        self._prepare(record, resolver)
        return await client.observe(record)

    async def _fail(
        self,
        record: ManagedResource,
        event_type: EventType,
        err: ReconcileError,
        late_initialized: bool = False,
    ) -> ReconcileResult:
        logger.error(f"{record.kind} {record.metadata.name}: {err.message}")
        record.set_conditions(reconcile_error(err))
        await self._publish(event_type, record, err.message)
        return ReconcileResult(
            kind=record.kind,
            name=record.metadata.name,
            success=False,
            message=err.message,
            late_initialized=late_initialized,
        )

    async def reconcile(
        self,
        record: ManagedResource,
        resolver: Optional[ReferenceResolver] = None,
    ) -> ReconcileResult:
        """
        Reconcile one record.

        Failures of the external API are reported in the result and as the
        record's Synced condition instead of being raised.

        Args:
            record: The record to reconcile.
            resolver: Resolver for references, overriding the controller's.

        Returns:
            ReconcileResult describing what was done.
        """
        client = self._client_for(record)
        kind = record.kind
        name = record.metadata.name
        self._prepare(record, resolver)

        try:
            observation = await client.observe(record)
        except ReconcileError as e:
            return await self._fail(
                record, EventType.CANNOT_OBSERVE_EXTERNAL_RESOURCE, e
            )

        late_initialized = observation.resource_late_initialized
        action = ReconcileAction.NONE

        if record.deleting:
            if not observation.resource_exists:
                logger.debug(f"{kind} {name} does not exist, nothing to delete")
                record.set_conditions(deleting(), reconcile_success())
                return ReconcileResult(
                    kind=kind,
                    name=name,
                    success=True,
                    late_initialized=late_initialized,
                )

            record.set_conditions(deleting())
            try:
                await client.delete(record)
            except ReconcileError as e:
                return await self._fail(
                    record,
                    EventType.CANNOT_DELETE_EXTERNAL_RESOURCE,
                    e,
                    late_initialized,
                )
            logger.info(f"Deleted {kind} {name}")
            await self._publish(EventType.DELETED_EXTERNAL_RESOURCE, record)
            action = ReconcileAction.DELETED

        elif not observation.resource_exists:
            record.set_conditions(creating())
            try:
                await client.create(record)
            except ReconcileError as e:
                return await self._fail(
                    record,
                    EventType.CANNOT_CREATE_EXTERNAL_RESOURCE,
                    e,
                    late_initialized,
                )
            logger.info(f"Created {kind} {name}")
            await self._publish(EventType.CREATED_EXTERNAL_RESOURCE, record)
            action = ReconcileAction.CREATED

        elif not observation.resource_up_to_date:
            try:
                await client.update(record)
            except ReconcileError as e:
                return await self._fail(
                    record,
                    EventType.CANNOT_UPDATE_EXTERNAL_RESOURCE,
                    e,
                    late_initialized,
                )
            logger.info(f"Updated {kind} {name}")
            await self._publish(EventType.UPDATED_EXTERNAL_RESOURCE, record)
            action = ReconcileAction.UPDATED

        else:
            logger.debug(f"{kind} {name} is up to date")

        record.set_conditions(reconcile_success())
        return ReconcileResult(
            kind=kind,
            name=name,
            success=True,
            action=action,
            late_initialized=late_initialized,
        )

    async def _reconcile_bounded(
        self, record: ManagedResource, resolver: Optional[ReferenceResolver]
    ) -> ReconcileResult:
        async with self.semaphore:
            return await self.reconcile(record, resolver)

    async def reconcile_all(
        self,
        records: Sequence[ManagedResource],
        resolver: Optional[ReferenceResolver] = None,
    ) -> List[ReconcileResult]:
        """Reconcile records concurrently. Results are in input order."""
        return list(
            await asyncio.gather(
                *(self._reconcile_bounded(record, resolver) for record in records)
            )
        )

    async def converge(
        self,
        records: Sequence[ManagedResource],
        max_passes: Optional[int] = None,
        order: Sequence[str] = KIND_ORDER,
    ) -> List[ReconcileResult]:
        """
        Reconcile records kind by kind until they stop changing.

        Kinds are handled in ``order`` so that the ids of referenced records
        are known before the records referencing them are reconciled. A
        record is reconciled again while its last pass created or updated
        something, at most ``max_passes`` times.

        Returns:
            The last result of every record, in input order.
        """
        for record in records:
            if record.kind not in order:
                raise ValueError(f"Unknown record kind: {record.kind}")

        max_passes = max_passes or self.config.max_passes
        resolver = self.resolver or InMemoryResolver(records)
        results: Dict[int, ReconcileResult] = {}

        for kind in order:
            pending = [i for i, record in enumerate(records) if record.kind == kind]
            passes = 0
            while pending and passes < max_passes:
                passes += 1
                logger.debug(f"{kind} pass {passes}: {len(pending)} record(s)")
                pass_results = await self.reconcile_all(
                    [records[i] for i in pending], resolver
                )
                still_changing = []
                for i, result in zip(pending, pass_results):
                    results[i] = result
                    if result.success and result.action in (
                        ReconcileAction.CREATED,
                        ReconcileAction.UPDATED,
                    ):
                        still_changing.append(i)
                pending = still_changing

            if pending:
                logger.warning(
                    f"{len(pending)} {kind} record(s) still changing after "
                    f"{max_passes} passes"
                )

        return [results[i] for i in range(len(records))]
