# lambdas/ci_report/log.py
"""
One-JSON-object-per-line logging for CloudWatch.

Lambda forwards stdout/stderr to CloudWatch Logs, so printing is all we need;
the JSON shape keeps the lines queryable with Logs Insights.
"""
import json
import sys
from typing import Any


def _emit(level: str, msg: str, stream, **fields: Any) -> None:
    record = {"level": level, "msg": msg}
    record.update({k: v for k, v in fields.items() if v is not None})
    print(json.dumps(record, default=str), file=stream, flush=True)


def info(msg: str, **fields: Any) -> None:
    _emit("info", msg, sys.stdout, **fields)


def error(msg: str, **fields: Any) -> None:
    _emit("error", msg, sys.stderr, **fields)
