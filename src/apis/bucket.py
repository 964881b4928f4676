"""Bucket records."""

from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import Field, field_validator

from apis.common import (
    APIModel,
    ManagedResource,
    Reference,
    ResourceStatus,
    Selector,
)

SCHEMA_TYPES = ("implicit", "explicit")


class RetentionRule(APIModel):
    """A rule to expire or retain data."""

    type: str = "expire"
    # Seconds to keep data for. 0 means infinite.
    every_seconds: int = 0
    shard_group_duration_seconds: Optional[int] = None


class BucketParameters(APIModel):
    """The configurable fields of a Bucket."""

    description: Optional[str] = None

    # ID of the owning organization. Either org_id, org_id_ref or
    # org_id_selector has to be given during creation.
    org_id: Optional[str] = Field(None, alias="orgID")
    org_id_ref: Optional[Reference] = Field(None, alias="orgIDRef")
    org_id_selector: Optional[Selector] = Field(None, alias="orgIDSelector")

    rp: Optional[str] = None

    # No rules means data never expires.
    retention_rules: List[RetentionRule] = Field(default_factory=list)

    schema_type: str = ""

    @field_validator("schema_type")
    @classmethod
    def validate_schema_type(cls, v: str) -> str:
        if v and v not in SCHEMA_TYPES:
            raise ValueError(f"schemaType must be one of: {', '.join(SCHEMA_TYPES)}")
        return v


class BucketLinks(APIModel):
    """URIs of the bucket's related resources."""

    labels: str = ""
    members: str = ""
    org: str = ""
    owners: str = ""
    self_link: str = Field("", alias="self")
    write: str = ""


class Label(APIModel):
    id: str = ""
    name: str = ""
    org_id: str = Field("", alias="orgID")
    properties: Dict[str, str] = Field(default_factory=dict)


class BucketObservation(APIModel):
    """The observable fields of a Bucket."""

    id: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    links: BucketLinks = Field(default_factory=BucketLinks)
    type: str = ""
    labels: List[Label] = Field(default_factory=list)


class BucketSpec(APIModel):
    for_provider: BucketParameters = Field(default_factory=BucketParameters)


class BucketStatus(ResourceStatus):
    at_provider: BucketObservation = Field(default_factory=BucketObservation)


class Bucket(ManagedResource):
    """A bucket in InfluxDB."""

    kind: Literal["Bucket"] = "Bucket"
    spec: BucketSpec = Field(default_factory=BucketSpec)
    status: BucketStatus = Field(default_factory=BucketStatus)
