"""
Record types for managed InfluxDB resources.

``Resource`` is the union of all record kinds, discriminated by ``kind``.
"""

from typing import Annotated, Union

from pydantic import Field

from apis.bucket import Bucket, BucketParameters, RetentionRule
from apis.common import (
    ANNOTATION_EXTERNAL_NAME,
    ManagedResource,
    ObjectMeta,
    Reference,
    Selector,
)
from apis.dbrp import (
    DatabaseRetentionPolicyMapping,
    DatabaseRetentionPolicyMappingParameters,
)
from apis.organization import Organization, OrganizationParameters

Resource = Annotated[
    Union[Organization, Bucket, DatabaseRetentionPolicyMapping],
    Field(discriminator="kind"),
]

# Kinds in the order they depend on each other.
KIND_ORDER = ("Organization", "Bucket", "DatabaseRetentionPolicyMapping")

__all__ = [
    "ANNOTATION_EXTERNAL_NAME",
    "Bucket",
    "BucketParameters",
    "DatabaseRetentionPolicyMapping",
    "DatabaseRetentionPolicyMappingParameters",
    "KIND_ORDER",
    "ManagedResource",
    "ObjectMeta",
    "Organization",
    "OrganizationParameters",
    "Reference",
    "Resource",
    "RetentionRule",
    "Selector",
]
