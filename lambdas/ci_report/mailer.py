# lambdas/ci_report/mailer.py
from typing import List, Optional

from botocore.exceptions import ClientError

from . import log

SUBJECT_LABEL = "CI Report"
EMPTY_REPORT_PLACEHOLDER = "(empty report)"


class DeliveryError(RuntimeError):
    """Raised when a report email could not be handed to SES."""
    pass


def parse_recipients(raw: str) -> List[str]:
    """Splits a comma-separated address list, trimming and dropping blanks."""
    return [address.strip() for address in (raw or "").split(",") if address.strip()]


def build_subject(prefix: str, run: Optional[str]) -> str:
    """
    Composes "<prefix> CI Report - <run>", leaving out whichever parts are
    missing, e.g. ("[CI]", "vpc") -> "[CI] CI Report - vpc", ("", None) -> "CI Report".
    """
    head = f"{prefix} " if prefix else ""
    tail = f"- {run}" if run else ""
    return f"{head}{SUBJECT_LABEL} {tail}".strip()


def send_report_email(ses, sender: str, recipients: List[str], subject: str, body: str) -> str:
    """
    Sends the report as a plain-text email and returns the SES MessageId.

    Raises:
        DeliveryError: If sender/recipients are not configured or SES rejects the call.
    """
    if not (sender and recipients):
        raise DeliveryError("SENDER_EMAIL and RECIPIENT_EMAILS must both be set")

    log.info(f"SES send to={','.join(recipients)} from={sender}", subject=subject)
    try:
        response = ses.send_email(
            Source=sender,
            Destination={'ToAddresses': recipients},
            Message={
                'Subject': {'Charset': "UTF-8", 'Data': subject},
                'Body': {'Text': {'Charset': "UTF-8", 'Data': body or EMPTY_REPORT_PLACEHOLDER}},
            },
        )
    except ClientError as e:
        raise DeliveryError(f"SES rejected the message: {e.response.get('Error', {}).get('Message', e)}") from e

    message_id = response.get('MessageId')
    log.info("SES result", message_id=message_id)
    return message_id
