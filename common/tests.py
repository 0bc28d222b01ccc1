import json

import pytest
from django.db import OperationalError
from django.test import RequestFactory

from common.http import BadPayload, read_payload
from common.middleware import PersistenceErrorMiddleware


def test_database_errors_become_503():
    middleware = PersistenceErrorMiddleware(lambda request: None)
    request = RequestFactory().post("/tickets/create/")

    resp = middleware.process_exception(request, OperationalError("connection lost"))

    assert resp.status_code == 503
    assert "not saved" in json.loads(resp.content)["error"]
    assert middleware.process_exception(request, ValueError("other")) is None


def test_read_payload_accepts_json_and_forms():
    factory = RequestFactory()
    assert read_payload(factory.post("/", {"a": "1"}, content_type="application/json")) == {"a": "1"}
    assert read_payload(factory.post("/", {"a": "1"})) == {"a": "1"}


def test_read_payload_rejects_non_object_json():
    request = RequestFactory().post("/", "[1, 2]", content_type="application/json")
    with pytest.raises(BadPayload, match="object"):
        read_payload(request)
