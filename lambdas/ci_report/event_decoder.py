# lambdas/ci_report/event_decoder.py
import json
import urllib.parse
from typing import Any, Dict, List, Optional

from . import log
from .models import ObjectRef


class EnvelopeError(ValueError):
    """Raised when an outer record carries a message that cannot be decoded."""
    pass


def extract_message(outer_record: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """
    Returns the storage-event document wrapped by one outer record.

    Handles SNS records (`Sns.Message`) and SQS records (`body`), including an
    SQS body that is itself an SNS envelope. Returns None when the record has
    no message field at all.

    Raises:
        EnvelopeError: If the message field is present but is not a JSON object.
    """
    sns = outer_record.get('Sns')
    if isinstance(sns, dict) and sns.get('Message'):
        return _load_json_object(sns['Message'])

    if outer_record.get('body'):
        document = _load_json_object(outer_record['body'])
        # SNS -> SQS subscriptions wrap the event a second time.
        if isinstance(document.get('Message'), str):
            return _load_json_object(document['Message'])
        return document

    return None


def _load_json_object(raw: Any) -> Dict[str, Any]:
    try:
        document = json.loads(raw)
    except (TypeError, json.JSONDecodeError) as e:
        raise EnvelopeError(f"message is not valid JSON: {e}") from e
    if not isinstance(document, dict):
        raise EnvelopeError(f"message is a JSON {type(document).__name__}, expected an object")
    return document


def object_refs_from_message(message: Dict[str, Any], default_bucket: str = "") -> List[ObjectRef]:
    """
    Turns the `Records` of an S3 event document into ObjectRefs. Records that
    lack a key, or a bucket when no default is configured, are skipped.
    """
    records = message.get('Records')
    if not isinstance(records, list):
        # s3:TestEvent and other non-object notifications
        return []

    refs = []
    for record in records:
        s3_info = record.get('s3') if isinstance(record, dict) else None
        if not isinstance(s3_info, dict):
            log.error("Skipping record without s3 section")
            continue

        object_info = s3_info.get('object')
        bucket_info = s3_info.get('bucket')
        raw_key = object_info.get('key') if isinstance(object_info, dict) else None
        bucket = bucket_info.get('name') if isinstance(bucket_info, dict) else None
        if not isinstance(bucket, str) or not bucket:
            bucket = default_bucket
        if not isinstance(raw_key, str) or not raw_key or not bucket:
            log.error("Skipping record without bucket or object key", key=raw_key, bucket=bucket)
            continue

        refs.append(ObjectRef(bucket=bucket, key=urllib.parse.unquote_plus(raw_key)))
    return refs


def decode_event(event: Dict[str, Any], default_bucket: str = "") -> List[ObjectRef]:
    """
    Flattens an invocation payload into the list of objects to report on, in
    payload order. A malformed outer record contributes nothing; the rest are
    still decoded.
    """
    outer_records = event.get('Records') if isinstance(event, dict) else None
    if not isinstance(outer_records, list):
        return []

    refs: List[ObjectRef] = []
    for i, outer_record in enumerate(outer_records):
        if not isinstance(outer_record, dict):
            log.error(f"Skipping outer record #{i + 1}: not an object")
            continue
        try:
            message = extract_message(outer_record)
        except EnvelopeError as e:
            log.error(f"Skipping outer record #{i + 1}: {e}")
            continue
        if message is None:
            log.info(f"Outer record #{i + 1} carries no message. Skipping.")
            continue
        refs.extend(object_refs_from_message(message, default_bucket))
    return refs
