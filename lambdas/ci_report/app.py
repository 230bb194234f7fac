# ci_report_dispatcher/lambdas/ci_report/app.py
import json
from typing import Any, Dict, List

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError

from . import log
from .aggregator import ArtifactAggregator, run_of
from .bedrock_summarizer import BedrockSummarizer
from .event_decoder import decode_event
from .mailer import build_subject, send_report_email
from .models import AppSettings, ObjectRef, RecordResult, get_settings


# Initialize config and clients outside the handler so warm invocations reuse them.
try:
    SETTINGS = get_settings()
    S3_CLIENT = boto3.client('s3')
    BEDROCK_RUNTIME = boto3.client(
        service_name="bedrock-runtime",
        region_name=SETTINGS.bedrock_region,
        config=Config(read_timeout=SETTINGS.bedrock_read_timeout),
    )
    SES_CLIENT = boto3.client('ses', region_name=SETTINGS.ses_region)
except (ValueError, BotoCoreError) as e:
    # Fails the Lambda init, which is what we want for broken config.
    log.error(f"FATAL: could not initialise CI report dispatcher: {e}")
    raise


def process_record(ref: ObjectRef, *, s3, bedrock, ses, settings: AppSettings) -> RecordResult:
    """
    Runs aggregate -> summarize -> deliver for one object. Any failure is
    logged and reported in the returned RecordResult instead of raised.
    """
    run = run_of(ref.key)
    result = RecordResult(key=ref.key, run=run, ok=False, stage="aggregate")
    log.info(f"Processing {ref.key} run: {run}", bucket=ref.bucket)

    try:
        collected = ArtifactAggregator(s3, settings.max_file_chars).collect(ref.bucket, ref.key)

        result.stage = "summarize"
        summarizer = BedrockSummarizer(
            bedrock,
            settings.bedrock_model_id,
            max_token_count=settings.report_max_tokens,
        )
        report = summarizer.summarize(collected)

        result.stage = "deliver"
        subject = build_subject(settings.subject_prefix, run)
        result.message_id = send_report_email(
            ses, settings.sender_email, settings.recipients, subject, report
        )
    except Exception as e:
        result.reason = str(e) or type(e).__name__
        log.error(f"Record failed at {result.stage}: {result.reason}", key=ref.key, run=run, stage=result.stage)
        return result

    result.ok = True
    result.stage = "done"
    return result


def process_event(event: Dict[str, Any], *, s3, bedrock, ses, settings: AppSettings) -> List[RecordResult]:
    """Decodes the payload and processes each object record in order."""
    refs = decode_event(event, default_bucket=settings.artifact_bucket)
    return [
        process_record(ref, s3=s3, bedrock=bedrock, ses=ses, settings=settings)
        for ref in refs
    ]


def handler(event: Dict[str, Any], context: object) -> Dict[str, Any]:
    """
    Main Lambda handler, triggered by SNS notifications of new CI artifacts.
    Always reports success; per-record failures only show up in the logs.
    """
    log.info(f"Event {json.dumps(event, default=str)[:1000]}")

    try:
        results = process_event(
            event,
            s3=S3_CLIENT,
            bedrock=BEDROCK_RUNTIME,
            ses=SES_CLIENT,
            settings=SETTINGS,
        )
    except Exception as e:
        log.error(f"Invocation aborted before all records were attempted: {e}")
        return {"ok": True}

    failed = [r for r in results if not r.ok]
    log.info(
        f"Processed {len(results)} record(s), {len(failed)} failed",
        failed=[{"key": r.key, "stage": r.stage, "reason": r.reason} for r in failed] or None,
    )
    return {"ok": True}
