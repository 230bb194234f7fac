# tests/test_app.py
import json
from unittest.mock import MagicMock, patch

import pytest

from aws_fakes import bedrock_response, client_error, s3_record, sns_record
from lambdas.ci_report import app
from lambdas.ci_report.models import AppSettings, ObjectRef


@pytest.fixture
def settings(monkeypatch):
    monkeypatch.setenv("RECIPIENT_EMAILS", "dev@example.com, qa@example.com")
    monkeypatch.setenv("SENDER_EMAIL", "ci@example.com")
    monkeypatch.setenv("EMAIL_SUBJECT_PREFIX", "[CI]")
    monkeypatch.delenv("ARTIFACT_BUCKET", raising=False)
    return AppSettings()


@pytest.fixture
def bedrock():
    client = MagicMock()
    client.invoke_model.side_effect = lambda **kwargs: bedrock_response("Report: all tests passed.")
    return client


@pytest.fixture
def ses():
    client = MagicMock()
    client.send_email.return_value = {"MessageId": "msg-1"}
    return client


def test_end_to_end_single_run(fake_s3, bedrock, ses, settings):
    s3 = fake_s3({"test-results/run1/unit.xml": "<testsuite tests='4' failures='0'/>"})
    event = {"Records": [sns_record([s3_record("B", "test-results/run1/unit.xml")])]}

    results = app.process_event(event, s3=s3, bedrock=bedrock, ses=ses, settings=settings)

    assert [(r.key, r.run, r.ok, r.stage, r.message_id) for r in results] == [
        ("test-results/run1/unit.xml", "run1", True, "done", "msg-1")
    ]

    bedrock.invoke_model.assert_called_once()
    prompt = json.loads(bedrock.invoke_model.call_args.kwargs["body"])["inputText"]
    assert "\n--- FILE: test-results/run1/unit.xml ---\n<testsuite tests='4' failures='0'/>" in prompt
    assert prompt.count("--- FILE:") == 1

    ses.send_email.assert_called_once()
    sent = ses.send_email.call_args.kwargs
    assert sent["Destination"] == {"ToAddresses": ["dev@example.com", "qa@example.com"]}
    assert sent["Source"] == "ci@example.com"
    assert sent["Message"]["Subject"]["Data"] == "[CI] CI Report - run1"
    assert sent["Message"]["Body"]["Text"]["Data"] == "Report: all tests passed."


def test_malformed_record_does_not_stop_later_records(fake_s3, bedrock, ses, settings):
    s3 = fake_s3({"sonarqube/run2/issues.json": '{"issues": []}'})
    event = {"Records": [
        {"Sns": {"Message": "this is not json"}},
        sns_record([s3_record("B", "sonarqube/run2/issues.json")]),
    ]}

    results = app.process_event(event, s3=s3, bedrock=bedrock, ses=ses, settings=settings)

    assert [r.key for r in results] == ["sonarqube/run2/issues.json"]
    ses.send_email.assert_called_once()


def test_bedrock_failure_still_emails_raw_data(fake_s3, ses, settings):
    s3 = fake_s3({"test-results/run1/unit.xml": "<raw/>"})
    bedrock = MagicMock()
    bedrock.invoke_model.side_effect = client_error("InvokeModel", "ThrottlingException", "slow down")

    result = app.process_record(
        ObjectRef("B", "test-results/run1/unit.xml"), s3=s3, bedrock=bedrock, ses=ses, settings=settings
    )

    assert result.ok
    body = ses.send_email.call_args.kwargs["Message"]["Body"]["Text"]["Data"]
    assert body.startswith("Bedrock failed to generate a report.\n\n")
    assert "\n--- FILE: test-results/run1/unit.xml ---\n<raw/>" in body


def test_delivery_failure_is_isolated_per_record(fake_s3, bedrock, settings, capsys):
    s3 = fake_s3({
        "test-results/run1/a.xml": "a",
        "test-results/run2/b.xml": "b",
    })
    ses = MagicMock()
    ses.send_email.side_effect = [client_error("SendEmail", "MessageRejected", "rejected"), {"MessageId": "msg-2"}]
    event = {"Records": [sns_record([
        s3_record("B", "test-results/run1/a.xml"),
        s3_record("B", "test-results/run2/b.xml"),
    ])]}

    results = app.process_event(event, s3=s3, bedrock=bedrock, ses=ses, settings=settings)

    assert [(r.ok, r.stage) for r in results] == [(False, "deliver"), (True, "done")]
    assert "rejected" in results[0].reason
    assert ses.send_email.call_count == 2
    assert "Record failed at deliver" in capsys.readouterr().err


def test_unexpected_error_is_reported_with_its_stage(fake_s3, ses, settings):
    s3 = fake_s3({"test-results/run1/a.xml": "a"})
    bedrock = MagicMock()

    with patch.object(app.BedrockSummarizer, "summarize", side_effect=RuntimeError("boom")):
        result = app.process_record(
            ObjectRef("B", "test-results/run1/a.xml"), s3=s3, bedrock=bedrock, ses=ses, settings=settings
        )

    assert (result.ok, result.stage, result.reason) == (False, "summarize", "boom")
    ses.send_email.assert_not_called()


def test_empty_storage_still_sends_a_report(fake_s3, bedrock, ses, settings):
    s3 = fake_s3({})

    result = app.process_record(ObjectRef("B", "test-results/run1/gone.xml"), s3=s3, bedrock=bedrock, ses=ses, settings=settings)

    assert result.ok
    prompt = json.loads(bedrock.invoke_model.call_args.kwargs["body"])["inputText"]
    assert "<RAW_CI_DATA>\n(no CI data found)\n</RAW_CI_DATA>" in prompt


def test_handler_always_reports_success(fake_s3, bedrock, settings):
    s3 = fake_s3({"test-results/run1/a.xml": "a"})
    ses = MagicMock()
    ses.send_email.side_effect = client_error("SendEmail")
    event = {"Records": [
        {"Sns": {"Message": "{broken"}},
        sns_record([s3_record("B", "test-results/run1/a.xml")]),
    ]}

    with patch.object(app, "S3_CLIENT", s3), patch.object(app, "BEDROCK_RUNTIME", bedrock), \
            patch.object(app, "SES_CLIENT", ses), patch.object(app, "SETTINGS", settings):
        assert app.handler(event, None) == {"ok": True}

    ses.send_email.assert_called_once()


def test_handler_survives_wrongly_typed_record_fields(fake_s3, bedrock, ses, settings):
    s3 = fake_s3({"test-results/run1/a.xml": "a"})
    message = {"Records": [
        {"s3": {"bucket": {"name": "B"}, "object": {"key": 123}}},
        {"s3": {"bucket": {"name": "B"}, "object": "oops"}},
        s3_record("B", "test-results/run1/a.xml"),
    ]}
    event = {"Records": [{"Sns": {"Message": json.dumps(message)}}]}

    with patch.object(app, "S3_CLIENT", s3), patch.object(app, "BEDROCK_RUNTIME", bedrock), \
            patch.object(app, "SES_CLIENT", ses), patch.object(app, "SETTINGS", settings):
        assert app.handler(event, None) == {"ok": True}

    ses.send_email.assert_called_once()
    assert ses.send_email.call_args.kwargs["Message"]["Subject"]["Data"] == "[CI] CI Report - run1"


def test_handler_reports_success_even_if_decoding_blows_up(settings, capsys):
    with patch.object(app, "process_event", side_effect=RuntimeError("unexpected")), \
            patch.object(app, "SETTINGS", settings):
        assert app.handler({"Records": []}, None) == {"ok": True}

    assert "Invocation aborted" in capsys.readouterr().err
