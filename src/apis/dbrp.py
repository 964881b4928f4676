"""Database retention policy mapping (DBRP) records."""

from typing import ClassVar, Literal, Optional

from pydantic import Field

from apis.common import (
    APIModel,
    ManagedResource,
    Reference,
    ResourceStatus,
    Selector,
)


class DatabaseRetentionPolicyMappingParameters(APIModel):
    """The configurable fields of a DatabaseRetentionPolicyMapping."""

    # ID of the bucket the mapping applies to. Either bucket_id,
    # bucket_id_ref or bucket_id_selector has to be given during creation.
    bucket_id: str = Field("", alias="bucketID")
    bucket_id_ref: Optional[Reference] = Field(None, alias="bucketIDRef")
    bucket_id_selector: Optional[Selector] = Field(None, alias="bucketIDSelector")

    # InfluxDB v1 database
    database: str

    # Whether this mapping is the default retention policy of the database.
    is_default: Optional[bool] = Field(None, alias="default")

    # Name of the owning organization. Either org, org_ref or org_selector
    # has to be given during creation.
    org: str = ""
    org_ref: Optional[Reference] = None
    org_selector: Optional[Selector] = None

    # InfluxDB v1 retention policy
    retention_policy: str


class DBRPLinks(APIModel):
    self_link: str = Field("", alias="self")


class DatabaseRetentionPolicyMappingObservation(APIModel):
    links: DBRPLinks = Field(default_factory=DBRPLinks)


class DatabaseRetentionPolicyMappingSpec(APIModel):
    for_provider: DatabaseRetentionPolicyMappingParameters


class DatabaseRetentionPolicyMappingStatus(ResourceStatus):
    at_provider: DatabaseRetentionPolicyMappingObservation = Field(
        default_factory=DatabaseRetentionPolicyMappingObservation
    )


class DatabaseRetentionPolicyMapping(ManagedResource):
    """
    A mapping of an InfluxDB v1 database and retention policy to a bucket.

    The create call only returns an id, so the id is kept as the record's
    external name rather than in the observed state.
    """

    external_name_defaults_to_name: ClassVar[bool] = False

    kind: Literal["DatabaseRetentionPolicyMapping"] = "DatabaseRetentionPolicyMapping"
    spec: DatabaseRetentionPolicyMappingSpec
    status: DatabaseRetentionPolicyMappingStatus = Field(
        default_factory=DatabaseRetentionPolicyMappingStatus
    )
