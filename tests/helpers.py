import json
import time

import requests


def make_response(status=200, body=None, content=None):
    """Build a real ``requests.Response`` without touching the network."""
    resp = requests.Response()
    resp.status_code = status
    resp.encoding = "utf-8"
    if content is not None:
        resp._content = content
    elif body is not None:
        resp._content = json.dumps(body).encode("utf-8")
        resp.headers["Content-Type"] = "application/json"
    else:
        resp._content = b""
    return resp


def wait_for(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return False
