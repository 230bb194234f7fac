# lambdas/ci_report/report_prompt.py
from pathlib import Path

NO_DATA_PLACEHOLDER = "(no CI data found)"

# Read once per container; the file ships next to this module.
PROMPT_TEMPLATE = (Path(__file__).parent / "report_prompt.txt").read_text(encoding="utf-8")


def build_prompt(all_text: str) -> str:
    """Wraps the aggregated CI data in the report instructions."""
    return PROMPT_TEMPLATE.format(raw_ci_data=all_text or NO_DATA_PLACEHOLDER).strip()
