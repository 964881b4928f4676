"""Organization records."""

from datetime import datetime
from typing import Literal, Optional

from pydantic import Field

from apis.common import APIModel, ManagedResource, ResourceStatus


class OrganizationParameters(APIModel):
    """The configurable fields of an Organization."""

    description: Optional[str] = None


class OrganizationLinks(APIModel):
    """URIs of the organization's related resources."""

    buckets: str = ""
    dashboards: str = ""
    labels: str = ""
    members: str = ""
    owners: str = ""
    secrets: str = ""
    self_link: str = Field("", alias="self")
    tasks: str = ""


class OrganizationObservation(APIModel):
    """The observable fields of an Organization."""

    id: str = ""
    status: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    links: OrganizationLinks = Field(default_factory=OrganizationLinks)


class OrganizationSpec(APIModel):
    for_provider: OrganizationParameters = Field(
        default_factory=OrganizationParameters
    )


class OrganizationStatus(ResourceStatus):
    at_provider: OrganizationObservation = Field(
        default_factory=OrganizationObservation
    )


class Organization(ManagedResource):
    """An organization in InfluxDB."""

    kind: Literal["Organization"] = "Organization"
    spec: OrganizationSpec = Field(default_factory=OrganizationSpec)
    status: OrganizationStatus = Field(default_factory=OrganizationStatus)
