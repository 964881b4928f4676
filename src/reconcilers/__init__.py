"""
Reconcilers package.

One external client per record kind, each owning the observe, create, update
and delete logic for that kind.
"""

from typing import Dict, Type

from apis import Bucket, DatabaseRetentionPolicyMapping, ManagedResource, Organization
from clients.influxdb import InfluxDBClient
from reconcilers.base import (
    ExternalClient,
    ExternalObservation,
    LateInitializer,
    ReconcileError,
)
from reconcilers.bucket import BucketClient
from reconcilers.dbrp import DatabaseRetentionPolicyMappingClient
from reconcilers.organization import OrganizationClient


def new_external_clients(
    api: InfluxDBClient,
) -> Dict[Type[ManagedResource], ExternalClient]:
    """Build the external client of every kind around one API client."""
    return {
        Organization: OrganizationClient(api),
        Bucket: BucketClient(api),
        DatabaseRetentionPolicyMapping: DatabaseRetentionPolicyMappingClient(api),
    }


__all__ = [
    "BucketClient",
    "DatabaseRetentionPolicyMappingClient",
    "ExternalClient",
    "ExternalObservation",
    "LateInitializer",
    "OrganizationClient",
    "ReconcileError",
    "new_external_clients",
]
