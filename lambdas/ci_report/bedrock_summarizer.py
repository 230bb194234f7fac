# ci_report_dispatcher/lambdas/ci_report/bedrock_summarizer.py
import json
from typing import Any, Dict

from . import log
from .report_prompt import build_prompt

FALLBACK_NOTICE = "Bedrock failed to generate a report."
NO_DATA_CAPTURED = "(no CI data captured)"


class BedrockSummarizer:
    """
    Uses AWS Bedrock (Amazon Titan Text request schema) to turn aggregated CI
    artifacts into an email-ready report.

    The summarizer never raises on inference problems: the caller always gets
    text back, at worst the raw CI data behind a failure notice.
    """
    def __init__(self, bedrock_runtime, model_id: str, max_token_count: int = 1500,
                 temperature: float = 0.2, top_p: float = 0.9):
        self.bedrock_runtime = bedrock_runtime
        self.model_id = model_id
        self.max_token_count = max_token_count
        self.temperature = temperature
        self.top_p = top_p

    def summarize(self, collected: str) -> str:
        """
        Generates the report for the aggregated buffer. Falls back to
        `generate_fallback_report` if the call fails or the response can't be parsed.
        """
        request_body = self.build_request_body(build_prompt(collected))

        try:
            response = self.bedrock_runtime.invoke_model(
                modelId=self.model_id,
                body=json.dumps(request_body),
                accept="application/json",
                contentType="application/json",
            )
            response_body = json.loads(response["body"].read())
            report = self.extract_text(response_body)
            log.info(f"Bedrock OK, chars: {len(report)}")
            return report

        except Exception as e:
            # Throttling, access denied, timeouts and malformed bodies all end here.
            log.error(f"Bedrock error: {type(e).__name__}: {e}", model_id=self.model_id)
            return self.generate_fallback_report(collected)

    def build_request_body(self, prompt: str) -> Dict[str, Any]:
        return {
            "inputText": prompt,
            "textGenerationConfig": {
                "maxTokenCount": self.max_token_count,
                "temperature": self.temperature,
                "topP": self.top_p,
                "stopSequences": [],
            },
        }

    @staticmethod
    def extract_text(body: Dict[str, Any]) -> str:
        """
        Returns `results[0].outputText`. An empty string is a valid answer;
        a missing field is a malformed response.
        """
        results_list = body.get("results") if isinstance(body, dict) else None
        if not isinstance(results_list, list) or not results_list:
            raise ValueError(f"No results in Bedrock response: {body}")
        first_item = results_list[0]
        output_text = first_item.get("outputText") if isinstance(first_item, dict) else None
        if not isinstance(output_text, str):
            raise ValueError(f"No outputText in Bedrock response: {body}")
        return output_text

    @staticmethod
    def generate_fallback_report(collected: str) -> str:
        """Degraded report used when Bedrock can't be reached or parsed."""
        return f"{FALLBACK_NOTICE}\n\n{collected or NO_DATA_CAPTURED}"
