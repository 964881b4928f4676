"""
Manifest loading and dumping.

A manifest is a YAML file of one or more documents, or a JSON file holding an
object or a list of objects. Every document is one record.
"""

import json
import logging
from typing import Any, Dict, Iterable, List, Set, Tuple

import yaml
from pydantic import TypeAdapter, ValidationError

from apis import ManagedResource, Resource

logger = logging.getLogger(__name__)

_resource_adapter = TypeAdapter(Resource)


class ManifestError(Exception):
    """Raised when a manifest cannot be read or holds an invalid record."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


def parse_resource(data: Any) -> ManagedResource:
    """
    Validate one manifest document as a record.

    Raises:
        ManifestError: If the document is not a valid record of a known kind
    """
    if not isinstance(data, dict):
        raise ManifestError(f"Expected a mapping, got {type(data).__name__}")
    try:
        return _resource_adapter.validate_python(data)
    except ValidationError as e:
        kind = data.get("kind", "<missing kind>")
        raise ManifestError(f"Invalid {kind} record: {e}") from e


def parse_documents(documents: Iterable[Any]) -> List[ManagedResource]:
    """
    Validate manifest documents as records.

    Empty documents are skipped. Two records of the same kind and name are
    rejected.
    """
    records: List[ManagedResource] = []
    seen: Set[Tuple[str, str]] = set()
    for document in documents:
        if document is None:
            continue
        record = parse_resource(document)
        key = (record.kind, record.metadata.name)
        if key in seen:
            raise ManifestError(f"Duplicate {record.kind} record: {key[1]}")
        seen.add(key)
        records.append(record)
    return records


def load_manifest(path: str) -> List[ManagedResource]:
    """
    Load the records of a manifest file.

    Files ending in ``.json`` are parsed as JSON, anything else as YAML.

    Raises:
        ManifestError: If the file cannot be parsed or holds invalid records
    """
    try:
        with open(path, "r") as f:
            if path.endswith(".json"):
                data = json.load(f)
                documents = data if isinstance(data, list) else [data]
            else:
                documents = list(yaml.safe_load_all(f))
    except OSError as e:
        raise ManifestError(f"Cannot read {path}: {e}") from e
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ManifestError(f"Cannot parse {path}: {e}") from e

    records = parse_documents(documents)
    logger.debug(f"Loaded {len(records)} record(s) from {path}")
    return records


def dump_record(record: ManagedResource) -> Dict[str, Any]:
    return record.model_dump(mode="json", by_alias=True, exclude_none=True)


def dump_manifest(records: Iterable[ManagedResource]) -> str:
    """Render records as a multi-document YAML manifest."""
    return yaml.safe_dump_all(
        [dump_record(record) for record in records],
        default_flow_style=False,
        sort_keys=False,
    )
