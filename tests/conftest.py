# tests/conftest.py
import os
from unittest.mock import MagicMock

import pytest

from aws_fakes import FakeStreamingBody, client_error

# app.py builds its boto3 clients at import time; they only need a region.
os.environ.setdefault("AWS_DEFAULT_REGION", "us-east-1")
os.environ.setdefault("AWS_REGION", "us-east-1")


@pytest.fixture
def fake_s3():
    """
    Builds a MagicMock S3 client backed by a {key: text} dict. Listing returns
    keys in insertion order, one page per prefix.
    """
    def _make(objects: dict):
        s3 = MagicMock()

        def paginate(Bucket, Prefix):
            contents = [{"Key": k} for k in objects if k.startswith(Prefix)]
            return [{"KeyCount": len(contents), "Contents": contents}]

        def get_object(Bucket, Key):
            if Key not in objects:
                raise client_error("GetObject", "NoSuchKey", "The specified key does not exist.")
            return {"Body": FakeStreamingBody(objects[Key])}

        s3.get_paginator.return_value.paginate.side_effect = paginate
        s3.get_object.side_effect = get_object
        return s3
    return _make
