"""Reconciler for InfluxDB organizations."""

import logging
from typing import Any, Dict

from apis.common import available, unavailable
from apis.organization import (
    Organization,
    OrganizationLinks,
    OrganizationObservation,
    OrganizationParameters,
)
from clients.influxdb import InfluxDBClient
from reconcilers.base import ExternalClient, ExternalObservation, ReconcileError
from reconcilers.notfound import find_or_none, is_not_found

logger = logging.getLogger(__name__)

ERR_FIND_ORGANIZATION = "cannot find organization"
ERR_CREATE_ORGANIZATION = "cannot create organization"
ERR_UPDATE_ORGANIZATION = "cannot update organization"
ERR_DELETE_ORGANIZATION = "cannot delete organization"


def generate_organization_observation(org: Dict[str, Any]) -> OrganizationObservation:
    """Convert an organization API response to an observation."""
    return OrganizationObservation(
        id=org.get("id") or "",
        status=org.get("status") or "",
        created_at=org.get("createdAt"),
        updated_at=org.get("updatedAt"),
        links=OrganizationLinks.model_validate(org.get("links") or {}),
    )


def generate_organization(name: str, params: OrganizationParameters) -> Dict[str, Any]:
    """Build the organization body the API accepts for creation and update."""
    out: Dict[str, Any] = {"name": name}
    if params.description is not None:
        out["description"] = params.description
    return out


def is_up_to_date(params: OrganizationParameters, org: Dict[str, Any]) -> bool:
    """Return whether an update call is necessary."""
    return (org.get("description") or "") == (params.description or "")


class OrganizationClient(ExternalClient[Organization]):
    """Observes, creates, updates and deletes InfluxDB organizations."""

    def __init__(self, api: InfluxDBClient):
        self.api = api

    @property
    def kind(self) -> str:
        return "Organization"

    async def observe(self, cr: Organization) -> ExternalObservation:
        name = cr.get_external_name()
        try:
            org = await find_or_none(
                self.api.find_organization_by_name(name), "organization", name
            )
        except Exception as e:
            raise ReconcileError(ERR_FIND_ORGANIZATION, e) from e

        if org is None:
            return ExternalObservation(resource_exists=False)

        cr.status.at_provider = generate_organization_observation(org)
        if cr.status.at_provider.status == "inactive":
            cr.set_conditions(unavailable())
        else:
            cr.set_conditions(available())

        return ExternalObservation(
            resource_exists=True,
            resource_up_to_date=is_up_to_date(cr.spec.for_provider, org),
        )

    async def create(self, cr: Organization) -> None:
        body = generate_organization(cr.get_external_name(), cr.spec.for_provider)
        try:
            await self.api.create_organization(body)
        except Exception as e:
            raise ReconcileError(ERR_CREATE_ORGANIZATION, e) from e

    async def update(self, cr: Organization) -> None:
        body = generate_organization(cr.get_external_name(), cr.spec.for_provider)
        body["id"] = cr.status.at_provider.id
        # An unset description compares equal to "", so clear it on the server.
        body.setdefault("description", "")
        try:
            await self.api.update_organization(body)
        except Exception as e:
            raise ReconcileError(ERR_UPDATE_ORGANIZATION, e) from e

    async def delete(self, cr: Organization) -> None:
        try:
            await self.api.delete_organization(cr.status.at_provider.id)
        except Exception as e:
            if is_not_found(e):
                logger.info(f"Organization {cr.metadata.name} is already gone")
                return
            raise ReconcileError(ERR_DELETE_ORGANIZATION, e) from e
