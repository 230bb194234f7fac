# ci_report_dispatcher/run_live.py
"""
Runs the CI report Lambda handler locally against live AWS (S3, Bedrock, SES).

Put ARTIFACT_BUCKET, SENDER_EMAIL, RECIPIENT_EMAILS, AWS_REGION etc. in a .env
file, then:

    python run_live.py test-results/run1/unit.xml
"""
import json
import sys

from dotenv import load_dotenv

# Settings and clients are built at import time, so load the .env first.
load_dotenv()

from lambdas.ci_report.app import SETTINGS, handler  # noqa: E402


def build_sns_event(bucket: str, key: str) -> dict:
    """Wraps an S3 ObjectCreated record in an SNS envelope, as S3 -> SNS -> Lambda does."""
    s3_event = {
        "Records": [{
            "eventSource": "aws:s3",
            "eventName": "ObjectCreated:Put",
            "s3": {
                "bucket": {"name": bucket},
                "object": {"key": key}
            }
        }]
    }
    return {"Records": [{"EventSource": "aws:sns", "Sns": {"Message": json.dumps(s3_event)}}]}


def run_live(key: str):
    if not SETTINGS.artifact_bucket:
        print("❌ ERROR: ARTIFACT_BUCKET is not set. Please create a .env file.")
        return

    print(f"--- Starting LIVE run for s3://{SETTINGS.artifact_bucket}/{key} ---")
    result = handler(build_sns_event(SETTINGS.artifact_bucket, key), None)
    print(f"--- Handler returned: {json.dumps(result)} ---")


if __name__ == "__main__":
    if len(sys.argv) != 2:
        print("usage: python run_live.py <object-key>")
        sys.exit(2)
    run_live(sys.argv[1])
