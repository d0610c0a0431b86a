"""
Provenance decoding from schema 1 manifests

Builds made with OpenShift source-to-image stamp the commit they were built
from into the image configuration labels. The configuration of the newest
layer is embedded as a JSON string in ``history[0].v1Compatibility``.
"""

import json
from datetime import datetime, timezone
from typing import Dict, Any, Optional

from .base import Provenance
from .errors import ProvenanceDecodeError

LABELS = {
    'commit_author': 'io.openshift.s2i.build.commit.author',
    'commit_date': 'io.openshift.s2i.build.commit.date',
    'commit_sha': 'io.openshift.s2i.build.commit.id',
    'ref': 'io.openshift.s2i.build.commit.ref',
    'source_location': 'io.openshift.s2i.build.source-location',
    'message': 'io.openshift.s2i.build.commit.message',
    'base_image': 'io.openshift.s2i.build.image',
}

# git's default date format, e.g. "Tue Mar 3 14:02:11 2020 +0100"
COMMIT_DATE_FORMAT = '%a %b %d %H:%M:%S %Y %z'

OLDEST = datetime.min.replace(tzinfo=timezone.utc)


def decode_provenance(manifest: Dict[str, Any]) -> Provenance:
    """
    Decode provenance from a manifest's first history entry

    Args:
        manifest: Schema 1 manifest as returned by the registry

    Returns:
        Provenance object; fields absent from the labels stay empty

    Raises:
        ProvenanceDecodeError: History is missing or the nested document is
            not the JSON object we expect
    """
    history = manifest.get('history')
    if not isinstance(history, list) or not history:
        raise ProvenanceDecodeError('Manifest has no history')

    first = history[0]
    raw = first.get('v1Compatibility') if isinstance(first, dict) else None
    if not isinstance(raw, str):
        raise ProvenanceDecodeError('First history entry has no v1Compatibility document')

    try:
        document = json.loads(raw)
    except ValueError as e:
        raise ProvenanceDecodeError(f"Malformed v1Compatibility document: {e}") from e

    if not isinstance(document, dict):
        raise ProvenanceDecodeError('v1Compatibility document is not an object')

    config = document.get('config')
    if config is None:
        return Provenance()
    if not isinstance(config, dict):
        raise ProvenanceDecodeError('v1Compatibility config is not an object')

    labels = config.get('Labels') or {}
    env = config.get('Env') or []
    if not isinstance(labels, dict) or not isinstance(env, list):
        raise ProvenanceDecodeError('v1Compatibility config has unexpected Labels or Env')

    fields = {name: str(labels.get(label) or '') for name, label in LABELS.items()}
    return Provenance(env=[str(e) for e in env], **fields)


def parse_commit_date(value: Optional[str]) -> datetime:
    """
    Parse a commit date label

    Unparsable or empty dates map to the oldest representable timestamp so
    such tags sort last.
    """
    if not value:
        return OLDEST
    try:
        return datetime.strptime(value.strip(), COMMIT_DATE_FORMAT)
    except ValueError:
        return OLDEST
