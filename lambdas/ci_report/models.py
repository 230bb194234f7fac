# ci_report_dispatcher/lambdas/ci_report/models.py
"""
Plain-dataclass models and the settings class for the CI Report Dispatcher.
"""
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import List, Optional

from .mailer import parse_recipients

DEFAULT_MODEL_ID = "amazon.titan-text-express-v1"


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"Environment variable {name} must be an integer, got {raw!r}")


class AppSettings:
    """
    Loads configuration from environment variables once per container.
    Treat an instance as read-only after construction.
    """
    def __init__(self):
        aws_region = os.getenv("AWS_REGION") or os.getenv("AWS_DEFAULT_REGION")

        self.artifact_bucket: str = os.getenv("ARTIFACT_BUCKET", "")
        self.recipients: List[str] = parse_recipients(os.getenv("RECIPIENT_EMAILS", ""))
        self.sender_email: str = os.getenv("SENDER_EMAIL", "")
        self.subject_prefix: str = os.getenv("EMAIL_SUBJECT_PREFIX", "")

        self.bedrock_model_id: str = os.getenv("BEDROCK_MODEL_ID") or DEFAULT_MODEL_ID
        self.bedrock_region: Optional[str] = os.getenv("BEDROCK_REGION") or aws_region
        self.ses_region: Optional[str] = os.getenv("SES_REGION") or aws_region

        # Limits
        self.max_file_chars: int = _int_env("MAX_FILE_CHARS", 60000)
        self.report_max_tokens: int = _int_env("REPORT_MAX_TOKENS", 1500)
        self.bedrock_read_timeout: int = _int_env("BEDROCK_READ_TIMEOUT", 60)


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    return AppSettings()


# Data models
@dataclass(frozen=True)
class ObjectRef:
    """An S3 object named by a notification, with its key already decoded."""
    bucket: str
    key: str


@dataclass
class RecordResult:
    """
    Outcome of processing one object record. `stage` is the last stage
    reached: "aggregate", "summarize", "deliver" or "done".
    """
    key: str
    run: Optional[str]
    ok: bool
    stage: str
    reason: str = ""
    message_id: Optional[str] = None
