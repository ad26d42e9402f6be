# tests/test_ingest.py

from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from ktc_taskboard.core.errors import LinkExpiredError, PayloadFormatError, SyncError
from ktc_taskboard.directory.directory_models import OFFLINE, ONLINE, Gender, Role
from ktc_taskboard.directory.ingest import (
    DirectorySync,
    fetch_directory,
    ingest_text,
    locate_records,
    normalize_user,
    normalize_users,
    sync_users,
)
from ktc_taskboard.directory.json_repair import parse_payload

from .fakes import mock_client

URL = "https://hook.example.test/read"
MISSING_BRACKETS = '{"data": {"id":1,"name":"A"},{"id":2,"name":"B"}}'


def test_strict_payload_is_untouched() -> None:
    assert parse_payload('{"status": "success", "data": []}') == {
        "status": "success",
        "data": [],
    }


def test_trailing_commas_are_repaired() -> None:
    data = parse_payload('{"status":"success","data":[{"id":1,"name":"A",},],}')
    assert locate_records(data) == [{"id": 1, "name": "A"}]


def test_missing_data_brackets_are_inserted() -> None:
    data = parse_payload(MISSING_BRACKETS)
    assert data == {"data": [{"id": 1, "name": "A"}, {"id": 2, "name": "B"}]}


def test_doubled_braces_are_collapsed() -> None:
    data = parse_payload('{"data": {{"id":1,"name":"A"},{"id":2,"name":"B"}}}')
    assert [r["id"] for r in locate_records(data)] == [1, 2]


def test_bare_object_run_is_wrapped() -> None:
    assert parse_payload('{"id":1},{"id":2}') == [{"id": 1}, {"id": 2}]


def test_salvage_keeps_whatever_parses() -> None:
    text = 'garbage {"id":1,"name":"A"} more {"id":2, "name": "B",} {broken'
    assert parse_payload(text) == [{"id": 1, "name": "A"}, {"id": 2, "name": "B"}]


def test_salvage_keeps_records_with_nested_fields() -> None:
    text = (
        '[{"id":1,"name":"A","extra":{"k":1}}, {"id":2 "name":"B"}, '
        '{"id":3,"name":"C } {"}]'
    )
    assert parse_payload(text) == [
        {"id": 1, "name": "A", "extra": {"k": 1}},
        {"id": 3, "name": "C } {"},
    ]
    assert [u.id for u in ingest_text(text).users] == ["1", "3"]


def test_salvage_looks_inside_a_broken_wrapper() -> None:
    text = (
        '{"status": "success", "data": ['
        '{"id":1,"name":"A","meta":{"tag":"x"}}, {"id":2 "name":"B"}]}'
    )
    assert parse_payload(text) == [{"id": 1, "name": "A", "meta": {"tag": "x"}}]


def test_unrecoverable_payload() -> None:
    with pytest.raises(PayloadFormatError):
        parse_payload("<html>Service unavailable</html>")


def test_locate_records() -> None:
    assert locate_records([{"id": 1}]) == [{"id": 1}]
    assert locate_records({"status": "success", "data": [1]}) == [1]
    assert locate_records({"data": {"id": 1}}) == [{"id": 1}]
    with pytest.raises(PayloadFormatError) as e:
        locate_records({"status": "error", "message": "x"})
    assert "Không tìm thấy mảng dữ liệu" in str(e.value)


def test_scenario_missing_brackets_end_to_end() -> None:
    result = ingest_text(MISSING_BRACKETS)

    assert [u.id for u in result.users] == ["1", "2"]
    assert all(u.role is Role.STAFF for u in result.users)
    assert all(u.gender is Gender.MALE for u in result.users)
    assert result.users[0].username == "a"
    assert result.users[0].password == "123456"
    assert result.dropped == 0
    assert result.defaults["role"] == 2
    assert result.defaults["password"] == 2
    assert "id" not in result.defaults


def test_normalize_defaults_and_fallbacks() -> None:
    user = normalize_user({"name": "Ngô Văn B"})
    assert user is not None
    assert user.id
    assert user.username == "ngôvănb"
    assert user.email == ""
    assert user.is_online == OFFLINE
    assert user.department_id is None
    assert user.created_at

    anon = normalize_user({"id": 42})
    assert anon.name == "Thành viên mới"
    assert anon.username == "user_42"

    numeric = normalize_user(
        {"0": 5, "1": "lan", "2": "Lan", "3": "lan@x.vn", "4": "manager", "5": "dept-1",
         "6": "0901234567", "7": "pw", "8": "Nữ"}
    )
    assert (numeric.id, numeric.username, numeric.name) == ("5", "lan", "Lan")
    assert numeric.role is Role.MANAGER
    assert numeric.department_id == "dept-1"
    assert numeric.password == "pw"
    assert numeric.gender is Gender.FEMALE

    assert normalize_user({"id": 1, "role": "BOSS"}).role is Role.STAFF
    assert normalize_user({"id": 1, "isOnline": True}).is_online == ONLINE


def test_double_encoded_records() -> None:
    inner = json.dumps({"id": 7, "name": "Hà", "role": "ADMIN"})
    user = normalize_user({"json": inner})
    assert (user.id, user.name, user.role) == ("7", "Hà", Role.ADMIN)

    nested = normalize_user({"json": {"id": 8, "name": "Mai"}})
    assert nested.id == "8"


def test_records_without_identity_are_discarded() -> None:
    assert normalize_user({"email": "nobody@x.vn"}) is None
    assert normalize_user("not a record") is None


def test_one_bad_record_among_ten() -> None:
    records = [{"id": i, "name": f"User {i}"} for i in range(9)]
    records.insert(4, {"json": "{this is not json"})

    result = normalize_users(records)
    assert len(result.users) == 9
    assert result.dropped == 1
    assert [u.id for u in result.users] == [str(i) for i in range(9)]


def test_non_empty_source_with_nothing_usable() -> None:
    with pytest.raises(PayloadFormatError):
        ingest_text('{"data": [{"email": "a@x.vn"}, {"email": "b@x.vn"}]}')
    assert ingest_text('{"data": []}').users == []


@pytest.mark.asyncio
async def test_fetch_directory_success() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, text=MISSING_BRACKETS)

    async with mock_client(handler) as client:
        result = await fetch_directory(URL, client=client)

    assert [u.id for u in result.users] == ["1", "2"]
    assert seen[0].method == "GET"
    assert str(seen[0].url) == URL


@pytest.mark.asyncio
async def test_fetch_directory_http_errors() -> None:
    async with mock_client(lambda r: httpx.Response(410)) as client:
        with pytest.raises(LinkExpiredError) as expired:
            await fetch_directory(URL, client=client)
    assert expired.value.status_code == 410

    async with mock_client(lambda r: httpx.Response(500)) as client:
        with pytest.raises(SyncError) as failed:
            await fetch_directory(URL, client=client)
    assert not isinstance(failed.value, LinkExpiredError)
    assert str(failed.value) == "Lỗi kết nối máy chủ (HTTP 500)"


@pytest.mark.asyncio
async def test_fetch_directory_network_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async with mock_client(handler) as client:
        with pytest.raises(SyncError):
            await fetch_directory(URL, client=client)

    with pytest.raises(SyncError):
        await fetch_directory("   ")


@pytest.mark.asyncio
async def test_sync_replaces_directory_only_on_success(directory) -> None:
    before = directory.all_users()

    async with mock_client(lambda r: httpx.Response(503)) as client:
        with pytest.raises(SyncError):
            await sync_users(directory, URL, client=client)
    assert directory.all_users() == before
    assert directory.last_sync is None

    async with mock_client(lambda r: httpx.Response(200, text=MISSING_BRACKETS)) as client:
        result = await sync_users(directory, URL, client=client)
    assert [u.id for u in directory.all_users()] == ["1", "2"]
    assert len(result.users) == 2
    assert directory.last_sync is not None


@pytest.mark.asyncio
async def test_directory_sync_is_not_reentrant(directory) -> None:
    entered = asyncio.Event()
    release = asyncio.Event()

    async def handler(request: httpx.Request) -> httpx.Response:
        entered.set()
        await release.wait()
        return httpx.Response(200, text=MISSING_BRACKETS)

    async with mock_client(handler) as client:
        sync = DirectorySync(directory, client=client)
        first = asyncio.create_task(sync.run(URL))
        await entered.wait()

        assert sync.running
        with pytest.raises(SyncError):
            await sync.run(URL)

        release.set()
        result = await first

    assert len(result.users) == 2
    assert not sync.running
