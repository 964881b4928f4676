"""
Common record types shared by all managed InfluxDB resources.

Records are shaped like Kubernetes objects: metadata, a spec holding the
desired parameters under ``forProvider`` and a status holding conditions and
the observed state under ``atProvider``.
"""

from datetime import datetime, timezone
from typing import ClassVar, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

API_VERSION = "influxdb.io/v1alpha1"

# Annotation holding the name (or id, for DBRPs) of the external resource.
ANNOTATION_EXTERNAL_NAME = "influxdb.io/external-name"


class APIModel(BaseModel):
    """Base model serialised with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Reference(APIModel):
    """A reference to another record by its metadata name."""

    name: str


class Selector(APIModel):
    """Selects a record by its labels. Every label given has to match."""

    match_labels: Dict[str, str] = Field(default_factory=dict)


class ObjectMeta(APIModel):
    """Record metadata."""

    name: str
    labels: Dict[str, str] = Field(default_factory=dict)
    annotations: Dict[str, str] = Field(default_factory=dict)
    deletion_timestamp: Optional[datetime] = None


class Condition(APIModel):
    """A status condition, e.g. Ready=True."""

    type: str
    status: str
    reason: str
    message: str = ""
    last_transition_time: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    def equivalent(self, other: "Condition") -> bool:
        """Whether two conditions are the same, ignoring transition time."""
        return (
            self.type == other.type
            and self.status == other.status
            and self.reason == other.reason
            and self.message == other.message
        )


CONDITION_READY = "Ready"
CONDITION_SYNCED = "Synced"


def available() -> Condition:
    return Condition(type=CONDITION_READY, status="True", reason="Available")


def unavailable() -> Condition:
    return Condition(type=CONDITION_READY, status="False", reason="Unavailable")


def creating() -> Condition:
    return Condition(type=CONDITION_READY, status="False", reason="Creating")


def deleting() -> Condition:
    return Condition(type=CONDITION_READY, status="False", reason="Deleting")


def reconcile_success() -> Condition:
    return Condition(type=CONDITION_SYNCED, status="True", reason="ReconcileSuccess")


def reconcile_error(err: Exception) -> Condition:
    return Condition(
        type=CONDITION_SYNCED,
        status="False",
        reason="ReconcileError",
        message=str(err),
    )


class ResourceStatus(APIModel):
    """Status fields common to every record."""

    conditions: List[Condition] = Field(default_factory=list)


class ManagedResource(APIModel):
    """
    Base class for a desired-state record of an external resource.

    Subclasses define ``kind``, ``spec`` and ``status``.
    """

    # Organization and Bucket are looked up by name, so the record name is
    # used as the external name until the user says otherwise. DBRPs are
    # looked up by the id assigned at creation.
    external_name_defaults_to_name: ClassVar[bool] = True

    api_version: str = API_VERSION
    metadata: ObjectMeta

    def get_external_name(self) -> str:
        return self.metadata.annotations.get(ANNOTATION_EXTERNAL_NAME, "")

    def set_external_name(self, name: str) -> None:
        self.metadata.annotations[ANNOTATION_EXTERNAL_NAME] = name

    @property
    def deleting(self) -> bool:
        """Whether the user asked for this record to be removed."""
        return self.metadata.deletion_timestamp is not None

    def mark_for_deletion(self) -> None:
        if self.metadata.deletion_timestamp is None:
            self.metadata.deletion_timestamp = datetime.now(timezone.utc)

    def get_condition(self, condition_type: str) -> Optional[Condition]:
        for condition in self.status.conditions:
            if condition.type == condition_type:
                return condition
        return None

    def set_conditions(self, *conditions: Condition) -> None:
        """
        Set conditions on the record status.

        A condition replaces an existing one of the same type. If the two are
        equivalent the existing one (and its transition time) is kept.
        """
        for new in conditions:
            existing = self.get_condition(new.type)
            if existing is None:
                self.status.conditions.append(new)
            elif not existing.equivalent(new):
                index = self.status.conditions.index(existing)
                self.status.conditions[index] = new
