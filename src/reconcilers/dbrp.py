"""Reconciler for InfluxDB database retention policy mappings."""

import logging
from typing import Any, Dict

from apis.common import available
from apis.dbrp import (
    DatabaseRetentionPolicyMapping,
    DatabaseRetentionPolicyMappingParameters,
)
from clients.influxdb import InfluxDBClient, InfluxDBError
from reconcilers.base import (
    ExternalClient,
    ExternalObservation,
    LateInitializer,
    ReconcileError,
)
from reconcilers.notfound import find_or_none, is_not_found

logger = logging.getLogger(__name__)

ERR_GET_DBRP = "cannot get dbrp"
ERR_CREATE_DBRP = "cannot create dbrp"
ERR_UPDATE_DBRP = "cannot update dbrp"
ERR_DELETE_DBRP = "cannot delete dbrp"


def late_initialize(
    params: DatabaseRetentionPolicyMappingParameters, dbrp: Dict[str, Any]
) -> bool:
    """Fill default from the API if the user left it unset."""
    li = LateInitializer()
    params.is_default = li.value(params.is_default, dbrp.get("default"))
    return li.changed


def is_up_to_date(
    params: DatabaseRetentionPolicyMappingParameters, dbrp: Dict[str, Any]
) -> bool:
    """Return whether an update call is necessary."""
    return bool(params.is_default) == bool(dbrp.get("default")) and (
        params.retention_policy == (dbrp.get("retention_policy") or "")
    )


class DatabaseRetentionPolicyMappingClient(
    ExternalClient[DatabaseRetentionPolicyMapping]
):
    """
    Observes, creates, updates and deletes DBRP mappings.

    Mappings can only be looked up by id, which is stored as the record's
    external name once the mapping has been created.
    """

    def __init__(self, api: InfluxDBClient):
        self.api = api

    @property
    def kind(self) -> str:
        return "DatabaseRetentionPolicyMapping"

    async def observe(self, cr: DatabaseRetentionPolicyMapping) -> ExternalObservation:
        dbrp_id = cr.get_external_name()
        if not dbrp_id:
            return ExternalObservation(resource_exists=False)

        params = cr.spec.for_provider
        try:
            resp = await find_or_none(
                self.api.get_dbrps(org=params.org or None, dbrp_id=dbrp_id)
            )
        except Exception as e:
            raise ReconcileError(ERR_GET_DBRP, e) from e

        content = (resp or {}).get("content") or []
        if not content:
            return ExternalObservation(resource_exists=False)

        dbrp = content[0]
        cr.status.at_provider.links.self_link = (dbrp.get("links") or {}).get(
            "self", ""
        )
        cr.set_conditions(available())
        late_initialized = late_initialize(params, dbrp)
        return ExternalObservation(
            resource_exists=True,
            resource_late_initialized=late_initialized,
            resource_up_to_date=is_up_to_date(params, dbrp),
        )

    async def create(self, cr: DatabaseRetentionPolicyMapping) -> None:
        params = cr.spec.for_provider
        body: Dict[str, Any] = {
            "bucketID": params.bucket_id,
            "database": params.database,
            "org": params.org,
            "retention_policy": params.retention_policy,
        }
        if params.is_default is not None:
            body["default"] = params.is_default
        try:
            resp = await self.api.post_dbrp(body)
        except Exception as e:
            raise ReconcileError(ERR_CREATE_DBRP, e) from e

        dbrp_id = (resp or {}).get("id")
        if not dbrp_id:
            raise ReconcileError(
                ERR_CREATE_DBRP, InfluxDBError("response did not include an id")
            )
        # The only place the identity of a mapping is established.
        cr.set_external_name(dbrp_id)
        logger.info(f"Created DBRP {cr.metadata.name} with id {dbrp_id}")

    async def update(self, cr: DatabaseRetentionPolicyMapping) -> None:
        params = cr.spec.for_provider
        body: Dict[str, Any] = {"retention_policy": params.retention_policy}
        if params.is_default is not None:
            body["default"] = params.is_default
        try:
            await self.api.patch_dbrp(
                cr.get_external_name(), body, org=params.org or None
            )
        except Exception as e:
            raise ReconcileError(ERR_UPDATE_DBRP, e) from e

    async def delete(self, cr: DatabaseRetentionPolicyMapping) -> None:
        try:
            await self.api.delete_dbrp(
                cr.get_external_name(), org=cr.spec.for_provider.org or None
            )
        except Exception as e:
            if is_not_found(e):
                logger.info(f"DBRP {cr.metadata.name} is already gone")
                return
            raise ReconcileError(ERR_DELETE_DBRP, e) from e
