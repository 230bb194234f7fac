# ci_report_dispatcher/lambdas/ci_report/aggregator.py
from typing import Any, List, Optional

from botocore.exceptions import BotoCoreError, ClientError

from . import log

TEST_RESULTS_PREFIX = "test-results"
SONARQUBE_PREFIX = "sonarqube"
DEFAULT_MAX_FILE_CHARS = 60000


class UnreadableBodyError(TypeError):
    """Raised when an object body has no shape we know how to drain."""
    pass


# Errors that mean "this object could not be read" rather than a bug.
READ_ERRORS = (BotoCoreError, ClientError, UnicodeDecodeError, UnreadableBodyError)


def run_of(key: str) -> Optional[str]:
    """Returns the CI run id (second path segment) of a key with 3+ segments."""
    parts = key.split("/")
    return parts[1] if len(parts) >= 3 else None


def truncate(text: str, max_chars: int = DEFAULT_MAX_FILE_CHARS) -> str:
    if len(text) <= max_chars:
        return text
    return f"{text[:max_chars]}\n...[truncated {len(text) - max_chars} chars]"


def body_to_text(body: Any) -> str:
    """
    Drains an S3 object body into a UTF-8 string.

    Accepts raw bytes, an already-decoded string, a readable stream such as
    botocore's StreamingBody, or anything yielding byte chunks.
    """
    if body is None:
        return ""
    if isinstance(body, (bytes, bytearray, memoryview)):
        return bytes(body).decode("utf-8")
    if isinstance(body, str):
        return body
    if callable(getattr(body, "read", None)):
        return body_to_text(body.read())
    if callable(getattr(body, "iter_chunks", None)):
        chunks = body.iter_chunks()
    else:
        try:
            chunks = iter(body)
        except TypeError:
            raise UnreadableBodyError(f"Cannot read object body of type {type(body).__name__}")
    try:
        return b"".join(chunks).decode("utf-8")
    except TypeError:
        raise UnreadableBodyError(f"Object body of type {type(body).__name__} did not yield bytes")


def format_section(key: str, text: str) -> str:
    return f"\n--- FILE: {key} ---\n{text}"


class ArtifactAggregator:
    """
    Collects every artifact belonging to one CI run into a single text buffer.
    Read failures are logged and leave the buffer partial; nothing is raised.
    """

    def __init__(self, s3_client, max_file_chars: int = DEFAULT_MAX_FILE_CHARS):
        self.s3 = s3_client
        self.max_file_chars = max_file_chars

    def fetch_section(self, bucket: str, key: str) -> str:
        response = self.s3.get_object(Bucket=bucket, Key=key)
        text = truncate(body_to_text(response.get("Body")), self.max_file_chars)
        return format_section(key, text)

    def list_prefix_text(self, bucket: str, prefix: str) -> str:
        """Fetches every object under the prefix, in listing order."""
        sections: List[str] = []
        listed = 0
        try:
            paginator = self.s3.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=bucket, Prefix=prefix):
                contents = page.get("Contents") or []
                listed += page.get("KeyCount", len(contents))
                for obj in contents:
                    key = obj.get("Key")
                    if not key:
                        continue
                    try:
                        sections.append(self.fetch_section(bucket, key))
                    except READ_ERRORS as e:
                        log.error(f"S3 read error: {e}", key=key)
        except (BotoCoreError, ClientError) as e:
            log.error(f"S3 list error: {e}", prefix=prefix)

        log.info(f"Listed {listed} under {prefix}")
        return "\n".join(sections)

    def collect(self, bucket: str, key: str) -> str:
        """
        Builds the aggregated buffer for the object that triggered the
        notification, falling back to that object alone when its run has
        nothing listed (or the key carries no run).
        """
        run = run_of(key)
        collected = ""
        if run:
            tests = self.list_prefix_text(bucket, f"{TEST_RESULTS_PREFIX}/{run}/")
            sonar = self.list_prefix_text(bucket, f"{SONARQUBE_PREFIX}/{run}/")
            collected = "\n".join(part for part in (tests, sonar) if part)

        if not collected:
            try:
                collected = self.fetch_section(bucket, key)
            except READ_ERRORS as e:
                log.error(f"S3 read error: {e}", key=key)
        return collected
