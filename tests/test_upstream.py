"""
Unit tests for the backend API client, using httpx.MockTransport.
"""

import asyncio
import json
import sys
from pathlib import Path

import httpx
import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "backend"))

from upstream import UpstreamClient, UpstreamError, unwrap_data

TEACHER = {"id": 7, "name": "Siti Nurhaliza", "email": "siti.n@sekolah.id", "role": "Guru BK"}


def make_client(handler) -> UpstreamClient:
    return UpstreamClient("http://backend.test", transport=httpx.MockTransport(handler))


class TestUnwrapData:
    def test_wrapped(self):
        assert unwrap_data({"data": [1, 2]}) == [1, 2]

    def test_plain(self):
        assert unwrap_data([1, 2]) == [1, 2]


class TestLogin:
    def test_successful_login(self):
        seen = {}

        def handler(request: httpx.Request):
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"data": {"access_token": "jwt-123", "teacher": TEACHER}})

        data = asyncio.run(make_client(handler).login("siti.n@sekolah.id", "rahasia"))

        assert data["access_token"] == "jwt-123"
        assert data["teacher"]["name"] == "Siti Nurhaliza"
        assert seen["path"] == "/api/auth/login"
        assert seen["body"] == {"email": "siti.n@sekolah.id", "password": "rahasia"}

    def test_rejected_login(self):
        def handler(request):
            return httpx.Response(401, json={"message": "Email atau password salah"})

        with pytest.raises(UpstreamError) as exc:
            asyncio.run(make_client(handler).login("x@sekolah.id", "salah"))
        assert exc.value.status_code == 401
        assert exc.value.message == "Email atau password salah"

    def test_missing_access_token(self):
        def handler(request):
            return httpx.Response(200, json={"data": {"teacher": TEACHER}})

        with pytest.raises(UpstreamError) as exc:
            asyncio.run(make_client(handler).login("x@sekolah.id", "pw"))
        assert exc.value.status_code == 502
        assert "access token" in exc.value.message

    def test_incomplete_teacher(self):
        def handler(request):
            return httpx.Response(200, json={"data": {"access_token": "t", "teacher": {"id": 1}}})

        with pytest.raises(UpstreamError) as exc:
            asyncio.run(make_client(handler).login("x@sekolah.id", "pw"))
        assert exc.value.status_code == 502

    def test_list_data_is_bad_gateway(self):
        def handler(request):
            return httpx.Response(200, json={"data": [TEACHER]})

        with pytest.raises(UpstreamError) as exc:
            asyncio.run(make_client(handler).login("x@sekolah.id", "pw"))
        assert exc.value.status_code == 502

    def test_non_json_body_is_bad_gateway(self):
        def handler(request):
            return httpx.Response(200, text="OK")

        with pytest.raises(UpstreamError) as exc:
            asyncio.run(make_client(handler).login("x@sekolah.id", "pw"))
        assert exc.value.status_code == 502
        assert exc.value.message == "Invalid response from server"

    def test_non_dict_teacher_is_bad_gateway(self):
        def handler(request):
            return httpx.Response(200, json={"data": {"access_token": "t", "teacher": "Siti"}})

        with pytest.raises(UpstreamError) as exc:
            asyncio.run(make_client(handler).login("x@sekolah.id", "pw"))
        assert exc.value.status_code == 502

    def test_backend_unreachable(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(UpstreamError) as exc:
            asyncio.run(make_client(handler).login("x@sekolah.id", "pw"))
        assert exc.value.status_code == 502


class TestMonthlyAttendance:
    def test_forwards_bearer_token(self):
        seen = {}

        def handler(request: httpx.Request):
            seen["path"] = request.url.path
            seen["auth"] = request.headers.get("authorization")
            return httpx.Response(200, json={"statusCode": 200, "data": [{"nama_siswa": "Budi"}]})

        rows = asyncio.run(make_client(handler).get_monthly_attendance("jwt-123", "2025-07"))

        assert rows == [{"nama_siswa": "Budi"}]
        assert seen["path"] == "/api/attendance/month/2025-07"
        assert seen["auth"] == "Bearer jwt-123"

    def test_missing_data_is_empty_list(self):
        def handler(request):
            return httpx.Response(200, json={"statusCode": 200, "data": None})

        assert asyncio.run(make_client(handler).get_monthly_attendance("t", "2025-07")) == []

    def test_error_status_propagates(self):
        def handler(request):
            return httpx.Response(404, json={"message": "Data tidak ditemukan"})

        with pytest.raises(UpstreamError) as exc:
            asyncio.run(make_client(handler).get_monthly_attendance("t", "2025-07"))
        assert exc.value.status_code == 404
        assert exc.value.message == "Data tidak ditemukan"

    def test_non_list_data_is_bad_gateway(self):
        def handler(request):
            return httpx.Response(200, json={"data": {"nama_siswa": "Budi"}})

        with pytest.raises(UpstreamError) as exc:
            asyncio.run(make_client(handler).get_monthly_attendance("t", "2025-07"))
        assert exc.value.status_code == 502

    def test_non_json_body_is_bad_gateway(self):
        def handler(request):
            return httpx.Response(200, text="<html>Bad Gateway</html>")

        with pytest.raises(UpstreamError) as exc:
            asyncio.run(make_client(handler).get_monthly_attendance("t", "2025-07"))
        assert exc.value.status_code == 502
