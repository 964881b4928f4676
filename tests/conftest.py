"""Pytest configuration and fixtures."""

import pytest
from unittest.mock import AsyncMock, MagicMock

from apis import Bucket, DatabaseRetentionPolicyMapping, Organization

API_METHODS = (
    "find_organization_by_name",
    "create_organization",
    "update_organization",
    "delete_organization",
    "find_bucket_by_name",
    "create_bucket",
    "update_bucket",
    "delete_bucket",
    "get_dbrps",
    "post_dbrp",
    "patch_dbrp",
    "delete_dbrp",
)


@pytest.fixture
def mock_api():
    """Create a mock InfluxDB API client."""
    api = MagicMock()
    for name in API_METHODS:
        setattr(api, name, AsyncMock())
    return api


@pytest.fixture
def organization():
    """Organization record with a description."""
    return Organization.model_validate(
        {
            "kind": "Organization",
            "metadata": {"name": "my-org"},
            "spec": {"forProvider": {"description": "Team org"}},
        }
    )


@pytest.fixture
def bucket():
    """Bucket record with a one hour expiry rule."""
    return Bucket.model_validate(
        {
            "kind": "Bucket",
            "metadata": {"name": "metrics"},
            "spec": {
                "forProvider": {
                    "description": "Metrics",
                    "orgIDRef": {"name": "my-org"},
                    "retentionRules": [{"type": "expire", "everySeconds": 3600}],
                }
            },
        }
    )


@pytest.fixture
def dbrp():
    """DBRP record mapping telegraf/autogen to the metrics bucket."""
    return DatabaseRetentionPolicyMapping.model_validate(
        {
            "kind": "DatabaseRetentionPolicyMapping",
            "metadata": {"name": "telegraf-autogen"},
            "spec": {
                "forProvider": {
                    "bucketIDRef": {"name": "metrics"},
                    "database": "telegraf",
                    "orgRef": {"name": "my-org"},
                    "retentionPolicy": "autogen",
                }
            },
        }
    )


@pytest.fixture
def sample_org_response():
    """Organization as returned by GET /api/v2/orgs."""
    return {
        "id": "0a1b2c3d4e5f6a7b",
        "name": "my-org",
        "description": "Team org",
        "status": "active",
        "createdAt": "2024-01-15T10:30:00Z",
        "updatedAt": "2024-01-15T10:30:00Z",
        "links": {
            "buckets": "/api/v2/buckets?org=my-org",
            "self": "/api/v2/orgs/0a1b2c3d4e5f6a7b",
        },
    }


@pytest.fixture
def sample_bucket_response():
    """Bucket as returned by GET /api/v2/buckets."""
    return {
        "id": "b0b1b2b3b4b5b6b7",
        "orgID": "0a1b2c3d4e5f6a7b",
        "type": "user",
        "name": "metrics",
        "description": "Metrics",
        "rp": "0",
        "schemaType": "implicit",
        "createdAt": "2024-01-15T10:30:00Z",
        "updatedAt": "2024-01-15T10:30:00Z",
        "retentionRules": [
            {
                "type": "expire",
                "everySeconds": 3600,
                "shardGroupDurationSeconds": 3600,
            }
        ],
        "labels": [],
        "links": {
            "org": "/api/v2/orgs/0a1b2c3d4e5f6a7b",
            "self": "/api/v2/buckets/b0b1b2b3b4b5b6b7",
        },
    }


MANIFEST_YAML = """\
apiVersion: influxdb.io/v1alpha1
kind: Organization
metadata:
  name: my-org
spec:
  forProvider:
    description: Team org
---
apiVersion: influxdb.io/v1alpha1
kind: Bucket
metadata:
  name: metrics
  annotations:
    influxdb.io/external-name: metrics-prod
spec:
  forProvider:
    orgIDRef:
      name: my-org
    retentionRules:
      - type: expire
        everySeconds: 3600
---
apiVersion: influxdb.io/v1alpha1
kind: DatabaseRetentionPolicyMapping
metadata:
  name: telegraf-autogen
spec:
  forProvider:
    bucketIDRef:
      name: metrics
    database: telegraf
    default: true
    orgRef:
      name: my-org
    retentionPolicy: autogen
"""


@pytest.fixture
def manifest_yaml():
    """Manifest of an organization, a bucket and a DBRP referencing both."""
    return MANIFEST_YAML
