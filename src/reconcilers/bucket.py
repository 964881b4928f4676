"""Reconciler for InfluxDB buckets."""

import logging
from typing import Any, Dict, List, Tuple

from apis.bucket import (
    Bucket,
    BucketLinks,
    BucketObservation,
    BucketParameters,
    Label,
    RetentionRule,
)
from apis.common import available
from clients.influxdb import InfluxDBClient
from reconcilers.base import (
    ExternalClient,
    ExternalObservation,
    LateInitializer,
    ReconcileError,
)
from reconcilers.notfound import find_or_none, is_not_found

logger = logging.getLogger(__name__)

ERR_FIND_BUCKET = "cannot find bucket"
ERR_CREATE_BUCKET = "cannot create bucket"
ERR_UPDATE_BUCKET = "cannot update bucket"
ERR_DELETE_BUCKET = "cannot delete bucket"

# The rule InfluxDB reports for a bucket that keeps data forever.
DEFAULT_RULE_TYPE = "expire"


def generate_bucket_observation(bucket: Dict[str, Any]) -> BucketObservation:
    """Convert a bucket API response to an observation."""
    labels = [
        Label(
            id=label.get("id") or "",
            name=label.get("name") or "",
            org_id=label.get("orgID") or "",
            properties=dict(label.get("properties") or {}),
        )
        for label in bucket.get("labels") or []
    ]
    labels.sort(key=lambda label: label.id)
    return BucketObservation(
        id=bucket.get("id") or "",
        created_at=bucket.get("createdAt"),
        updated_at=bucket.get("updatedAt"),
        links=BucketLinks.model_validate(bucket.get("links") or {}),
        type=bucket.get("type") or "",
        labels=labels,
    )


def generate_bucket(name: str, params: BucketParameters) -> Dict[str, Any]:
    """Build the bucket body the API accepts for creation and update."""
    out: Dict[str, Any] = {
        "name": name,
        "retentionRules": [
            rule.model_dump(by_alias=True, exclude_none=True)
            for rule in params.retention_rules
        ],
    }
    if params.description is not None:
        out["description"] = params.description
    if params.org_id is not None:
        out["orgID"] = params.org_id
    if params.rp is not None:
        out["rp"] = params.rp
    if params.schema_type:
        out["schemaType"] = params.schema_type
    return out


def observed_rules(bucket: Dict[str, Any]) -> List[RetentionRule]:
    return [
        RetentionRule.model_validate(rule)
        for rule in bucket.get("retentionRules") or []
    ]


def _rule_key(rule: RetentionRule) -> Tuple[str, int, int]:
    return rule.type, rule.every_seconds, rule.shard_group_duration_seconds or 0


def sort_rules(rules: List[RetentionRule]) -> List[RetentionRule]:
    """Sort rules by type into a canonical order."""
    return sorted(rules, key=_rule_key)


def is_default_rule(rule: RetentionRule) -> bool:
    """Whether a rule is the implicit keep-forever rule."""
    return rule.type == DEFAULT_RULE_TYPE and rule.every_seconds == 0


def canonical_rules(rules: List[RetentionRule]) -> List[RetentionRule]:
    """
    Drop the implicit keep-forever rule and sort the rest.

    Having no rule and having the expire/0s rule mean the same thing, so both
    sides of a comparison go through this first.
    """
    return sort_rules([rule for rule in rules if not is_default_rule(rule)])


def rules_equal(a: RetentionRule, b: RetentionRule) -> bool:
    return _rule_key(a) == _rule_key(b)


def late_initialize(params: BucketParameters, bucket: Dict[str, Any]) -> bool:
    """
    Set the defaults from the API for fields the user left unset.

    Returns:
        True if any field of params changed.
    """
    li = LateInitializer()
    params.description = li.value(params.description, bucket.get("description"))
    params.rp = li.value(params.rp, bucket.get("rp"))
    params.schema_type = li.string(params.schema_type, bucket.get("schemaType"))

    # Rules are paired by position after sorting; sort_rules returns the same
    # objects, so filling them fills params without reordering it.
    desired = sort_rules(params.retention_rules)
    observed = sort_rules(observed_rules(bucket))
    for want, have in zip(desired, observed):
        if want.type == have.type:
            want.shard_group_duration_seconds = li.value(
                want.shard_group_duration_seconds,
                have.shard_group_duration_seconds,
            )
    return li.changed


def is_up_to_date(params: BucketParameters, bucket: Dict[str, Any]) -> bool:
    """Return whether an update call is necessary."""
    desired = canonical_rules(params.retention_rules)
    observed = canonical_rules(observed_rules(bucket))
    if len(desired) != len(observed):
        return False
    for want, have in zip(desired, observed):
        if not rules_equal(want, have):
            return False
    return (bucket.get("description") or "") == (params.description or "")


class BucketClient(ExternalClient[Bucket]):
    """Observes, creates, updates and deletes InfluxDB buckets."""

    def __init__(self, api: InfluxDBClient):
        self.api = api

    @property
    def kind(self) -> str:
        return "Bucket"

    async def observe(self, cr: Bucket) -> ExternalObservation:
        name = cr.get_external_name()
        try:
            bucket = await find_or_none(
                self.api.find_bucket_by_name(name), "bucket", name
            )
        except Exception as e:
            raise ReconcileError(ERR_FIND_BUCKET, e) from e

        if bucket is None:
            return ExternalObservation(resource_exists=False)

        cr.status.at_provider = generate_bucket_observation(bucket)
        cr.set_conditions(available())
        late_initialized = late_initialize(cr.spec.for_provider, bucket)
        return ExternalObservation(
            resource_exists=True,
            resource_late_initialized=late_initialized,
            resource_up_to_date=is_up_to_date(cr.spec.for_provider, bucket),
        )

    async def create(self, cr: Bucket) -> None:
        body = generate_bucket(cr.get_external_name(), cr.spec.for_provider)
        try:
            await self.api.create_bucket(body)
        except Exception as e:
            raise ReconcileError(ERR_CREATE_BUCKET, e) from e

    async def update(self, cr: Bucket) -> None:
        body = generate_bucket(cr.get_external_name(), cr.spec.for_provider)
        body["id"] = cr.status.at_provider.id
        try:
            await self.api.update_bucket(body)
        except Exception as e:
            raise ReconcileError(ERR_UPDATE_BUCKET, e) from e

    async def delete(self, cr: Bucket) -> None:
        try:
            await self.api.delete_bucket(cr.status.at_provider.id)
        except Exception as e:
            if is_not_found(e):
                logger.info(f"Bucket {cr.metadata.name} is already gone")
                return
            raise ReconcileError(ERR_DELETE_BUCKET, e) from e
