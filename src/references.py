"""
Cross-record references.

A Bucket can name its Organization and a DBRP its Bucket and Organization by
record name instead of by id, or select them by labels. The referenced
record's identity is copied into the referencing field before the record is
reconciled.
"""

import logging
from abc import ABC, abstractmethod
from typing import Callable, Dict, Iterable, Optional, Tuple

from apis import (
    Bucket,
    DatabaseRetentionPolicyMapping,
    ManagedResource,
    Organization,
    Reference,
    Selector,
)

logger = logging.getLogger(__name__)

Extractor = Callable[[str, ManagedResource], str]


def extract_id(kind: str, record: ManagedResource) -> str:
    """
    Return the external id of an Organization or Bucket record.

    Returns "" when the record is of another kind or has no id yet.
    """
    if kind == "Organization" and isinstance(record, Organization):
        return record.status.at_provider.id
    if kind == "Bucket" and isinstance(record, Bucket):
        return record.status.at_provider.id
    return ""


def external_name(kind: str, record: ManagedResource) -> str:
    """Return the external name of a record of any kind."""
    return record.get_external_name() if record.kind == kind else ""


class ReferenceResolver(ABC):
    """Looks up the value a reference points to."""

    @abstractmethod
    def resolve(
        self, kind: str, name: str, extract: Extractor = extract_id
    ) -> Optional[str]:
        """
        Resolve a reference to a record.

        Args:
            kind: Kind of the referenced record.
            name: Metadata name of the referenced record.
            extract: Reads the wanted value off the referenced record.

        Returns:
            The value, or None if the record is unknown or has no value yet.
        """
        pass

    @abstractmethod
    def select(self, kind: str, match_labels: Dict[str, str]) -> Optional[str]:
        """Return the name of the first record of a kind carrying all labels."""
        pass


class InMemoryResolver(ReferenceResolver):
    """Resolves references against a fixed set of records."""

    def __init__(self, records: Iterable[ManagedResource]):
        self._records: Dict[Tuple[str, str], ManagedResource] = {
            (r.kind, r.metadata.name): r for r in records
        }

    def get(self, kind: str, name: str) -> Optional[ManagedResource]:
        return self._records.get((kind, name))

    def resolve(
        self, kind: str, name: str, extract: Extractor = extract_id
    ) -> Optional[str]:
        record = self.get(kind, name)
        if record is None:
            return None
        return extract(kind, record) or None

    def select(self, kind: str, match_labels: Dict[str, str]) -> Optional[str]:
        for (record_kind, name), record in self._records.items():
            if record_kind != kind:
                continue
            labels = record.metadata.labels
            if all(labels.get(k) == v for k, v in match_labels.items()):
                return name
        return None


def _select(
    resolver: ReferenceResolver,
    kind: str,
    ref: Optional[Reference],
    selector: Optional[Selector],
    current: Optional[str],
) -> Optional[Reference]:
    # A selector only picks a reference for a field that has neither.
    if ref is not None or selector is None or current:
        return ref
    name = resolver.select(kind, selector.match_labels)
    if name is None:
        logger.debug(f"No {kind} matches labels {selector.match_labels}")
        return None
    return Reference(name=name)


def _resolve(
    resolver: ReferenceResolver,
    kind: str,
    name: str,
    current: Optional[str],
    extract: Extractor = extract_id,
) -> Optional[str]:
    value = resolver.resolve(kind, name, extract)
    if value is None:
        # Passed through as is; the API decides whether it is acceptable.
        logger.debug(f"Reference to {kind} {name} is not resolvable yet")
        return current
    return value


def resolve_references(record: ManagedResource, resolver: ReferenceResolver) -> None:
    """
    Fill the referencing fields of a record from the records they name.

    A selector is turned into a reference first and the reference is stored
    on the record, so later passes resolve the same record.
    """
    if isinstance(record, Bucket):
        params = record.spec.for_provider
        params.org_id_ref = _select(
            resolver,
            "Organization",
            params.org_id_ref,
            params.org_id_selector,
            params.org_id,
        )
        if params.org_id_ref is not None:
            params.org_id = _resolve(
                resolver, "Organization", params.org_id_ref.name, params.org_id
            )

    elif isinstance(record, DatabaseRetentionPolicyMapping):
        params = record.spec.for_provider
        params.bucket_id_ref = _select(
            resolver,
            "Bucket",
            params.bucket_id_ref,
            params.bucket_id_selector,
            params.bucket_id,
        )
        if params.bucket_id_ref is not None:
            params.bucket_id = _resolve(
                resolver, "Bucket", params.bucket_id_ref.name, params.bucket_id
            )
        params.org_ref = _select(
            resolver, "Organization", params.org_ref, params.org_selector, params.org
        )
        if params.org_ref is not None:
            params.org = _resolve(
                resolver,
                "Organization",
                params.org_ref.name,
                params.org,
                extract=external_name,
            )
