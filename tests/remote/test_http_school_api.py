from __future__ import annotations

import pytest
import requests

from src.madrasa_system.madrasa_system.core.exceptions import RemoteApiError
from src.madrasa_system.madrasa_system.remote.http_api import HttpSchoolApi


class FakeResponse:
    def __init__(self, status_code=200, body=None, content=None):
        self.status_code = status_code
        self._body = body
        self.content = content if content is not None else (b"{}" if body is not None else b"")

    @property
    def ok(self):
        return 200 <= self.status_code < 400

    def json(self):
        if self._body is None:
            raise ValueError("no json")
        return self._body


class FakeSession:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.sent = []

    def request(self, method, url, **kwargs):
        self.sent.append((method, url, kwargs))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def _api(*responses):
    session = FakeSession(*responses)
    return HttpSchoolApi("http://school.test/", timeout=3, session=session), session


def test_list_students_drops_empty_filters():
    api, session = _api(FakeResponse(body=[{"id": 1}]))

    assert api.list_students(course_type="pu", year="1", course_division=None, section="") == [{"id": 1}]

    method, url, kwargs = session.sent[0]
    assert (method, url) == ("GET", "http://school.test/api/students")
    assert kwargs["params"] == {"courseType": "pu", "year": "1"}
    assert kwargs["timeout"] == 3.0


def test_create_attendance_posts_json():
    record = {"studentId": 1, "status": "present"}
    api, session = _api(FakeResponse(status_code=201, body=record))

    assert api.create_attendance(record) == record
    assert session.sent[0][2]["json"] == record


def test_holidays_exclude_deleted():
    api, session = _api(FakeResponse(body=[]))
    api.list_holidays()
    assert session.sent[0][2]["params"] == {"isDeleted": "false"}


def test_http_error_carries_status_code():
    api, _ = _api(FakeResponse(status_code=503, body={"error": "down"}))
    with pytest.raises(RemoteApiError) as exc:
        api.list_leaves()
    assert exc.value.status_code == 503


def test_transport_error_is_wrapped():
    api, _ = _api(requests.ConnectionError("refused"))
    with pytest.raises(RemoteApiError) as exc:
        api.create_leave({"studentId": 1})
    assert exc.value.status_code is None


def test_invalid_json_is_an_error():
    api, _ = _api(FakeResponse(status_code=200, content=b"<html>"))
    with pytest.raises(RemoteApiError):
        api.list_namaz_records(date="2026-03-05")


def test_delete_accepts_empty_body():
    api, session = _api(FakeResponse(status_code=204))
    api.delete_student(7)
    assert session.sent[0][:2] == ("DELETE", "http://school.test/api/students/7")


def test_health_check():
    api, _ = _api(FakeResponse(body={"status": "ok"}), requests.Timeout("slow"))
    assert api.health() is True
    assert api.health() is False
