import json

import pytest
import requests


def build_response(status=200, payload=None, text=None, content_type="application/json"):
    """A real requests.Response populated in memory."""
    response = requests.Response()
    response.status_code = status
    if payload is not None:
        response._content = json.dumps(payload).encode("utf-8")
    elif text is not None:
        response._content = text.encode("utf-8")
    else:
        response._content = b""
    response.headers["Content-Type"] = content_type
    response.encoding = "utf-8"
    return response


@pytest.fixture
def make_response():
    return build_response
