"""HTTP 接口的集成测试：统一响应结构、路由参数解析与错误码。"""

import json

from fastapi.testclient import TestClient

API = "/api/v1"


def _node_ids(payload: dict) -> list[str]:
    return [node["node_id"] for node in payload["data"]]


def test_health_check(client: TestClient):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"msg": "OK", "data": {"status": "healthy"}, "code": 200}


def test_request_id_is_echoed(client: TestClient):
    response = client.get("/health", headers={"X-Request-ID": "req-123"})
    assert response.headers["x-request-id"] == "req-123"

    generated = client.get("/health").headers["x-request-id"]
    assert generated and generated != "req-123"


# ----------------------------------------------------------------------
# 用户
# ----------------------------------------------------------------------


def test_list_and_get_users(client: TestClient):
    response = client.get(f"{API}/users")
    assert response.status_code == 200
    payload = response.json()
    assert payload["code"] == 200
    assert [user["username"] for user in payload["data"]] == ["User3", "User2", "User1"]
    assert all("key" not in user for user in payload["data"])

    response = client.get(f"{API}/users/User2")
    assert response.json()["data"]["email"] == "user2@fake-email.com"


def test_create_user_validation_error_envelope(client: TestClient):
    response = client.post(f"{API}/users", json={"username": "public"})
    assert response.status_code == 400
    payload = response.json()
    assert payload["code"] == 400
    assert payload["data"]["reason"] == "invalid-string-length"
    assert payload["data"]["field"] == "email"


def test_user_lifecycle(client: TestClient):
    body = {
        "username": "Newcomer",
        "email": "newcomer@fake-email.com",
        "salt": "0123456789abcdef0123456789ABCDEF",
        "key": "f" * 128,
    }
    created = client.post(f"{API}/users", json=body)
    assert created.status_code == 200
    assert created.json()["data"]["salt"] == body["salt"].lower()

    duplicate = client.post(f"{API}/users", json=body)
    assert duplicate.status_code == 400
    assert duplicate.json()["data"]["reason"] == "duplicate-field-value"

    patched = client.patch(f"{API}/users/Newcomer", json={"email": "moved@fake-email.com"})
    assert patched.json() == {"msg": "用户更新成功", "data": None, "code": 200}

    assert client.delete(f"{API}/users/Newcomer").status_code == 200
    missing = client.get(f"{API}/users/Newcomer")
    assert missing.status_code == 404
    assert missing.json()["data"] == {"item": "Newcomer", "item_name": "user"}


def test_authenticate_user(client: TestClient):
    body = {
        "username": "AuthUser",
        "email": "auth@fake-email.com",
        "salt": "a" * 32,
        "key": "c" * 128,
    }
    client.post(f"{API}/users", json=body)

    assert client.post(f"{API}/users/AuthUser/auth", json={"key": "C" * 128}).status_code == 200

    denied = client.post(f"{API}/users/AuthUser/auth", json={"key": "d" * 128})
    assert denied.status_code == 403
    assert denied.json()["code"] == 403
    assert client.post(f"{API}/users/AuthUser/auth", json={}).status_code == 403
    assert client.post(f"{API}/users/Nobody/auth", json={"key": "c" * 128}).status_code == 403


def test_list_users_with_unknown_cursor(client: TestClient):
    response = client.get(f"{API}/users", params={"after": "5f1d7a00aa00bb00ccffffff"})
    assert response.status_code == 404
    assert response.json()["data"]["item_name"] == "user_id"


# ----------------------------------------------------------------------
# 文件系统
# ----------------------------------------------------------------------


def test_get_nodes_by_path(client: TestClient, dummy_data):
    files, metas = dummy_data.files, dummy_data.metas
    response = client.get(f"{API}/filesystem/User1/{files[0]}/{metas[0]}")
    assert response.status_code == 200
    assert _node_ids(response.json()) == [metas[0], files[0]]

    hidden = client.get(f"{API}/filesystem/User1/{files[0]}/{files[4]}")
    assert hidden.status_code == 404
    assert hidden.json()["data"] == {"item_name": "node_ids"}

    invalid = client.get(f"{API}/filesystem/User1/not-an-id")
    assert invalid.status_code == 400
    assert invalid.json()["data"]["reason"] == "invalid-object-id"


def test_search_with_json_query_parameters(client: TestClient, dummy_data):
    response = client.get(
        f"{API}/filesystem/User3/search",
        params={
            "match": json.dumps({"tags": ["music"]}),
            "regexMatch": json.dumps({"text": "^tell me"}),
        },
    )
    assert response.status_code == 200
    assert _node_ids(response.json()) == [dummy_data.files[3]]

    everything = client.get(f"{API}/filesystem/User2/search")
    assert _node_ids(everything.json()) == [dummy_data.metas[1], dummy_data.files[3], dummy_data.files[2]]


def test_search_rejects_malformed_matchers(client: TestClient):
    response = client.get(f"{API}/filesystem/User1/search", params={"match": "{not json"})
    assert response.status_code == 400
    assert response.json()["data"] == {"reason": "invalid-matcher-shape", "matcher": "match"}

    response = client.get(f"{API}/filesystem/User1/search", params={"regexMatch": json.dumps(["x"])})
    assert response.status_code == 400
    assert response.json()["data"]["matcher"] == "regexMatch"

    response = client.get(f"{API}/filesystem/User1/search", params={"match": json.dumps({"lock": 1})})
    assert response.json()["data"]["reason"] == "unknown-specifier"


def test_node_lifecycle(client: TestClient, dummy_data):
    created = client.post(
        f"{API}/filesystem/User2",
        json={
            "type": "file",
            "name": "Notes",
            "text": "hello",
            "tags": ["Work"],
            "lock": None,
            "permissions": {"User1": "view"},
        },
    )
    assert created.status_code == 200
    node = created.json()["data"]
    assert node["size"] == 5
    assert node["tags"] == ["work"]
    node_id = node["node_id"]

    # 只有 view 授权，不能修改
    forbidden = client.patch(f"{API}/filesystem/User1/{node_id}", json={"text": "x"})
    assert forbidden.status_code == 404
    assert forbidden.json()["data"]["item_name"] == "node_id"

    lock = {"user": "User2", "client": "desktop", "createdAt": 1600000000000}
    assert client.patch(f"{API}/filesystem/User2/{node_id}", json={"lock": lock}).status_code == 200
    fetched = client.get(f"{API}/filesystem/User1/{node_id}").json()["data"][0]
    assert fetched["lock"] == lock

    # 非所有者的删除被静默忽略
    assert client.delete(f"{API}/filesystem/User1/{node_id}").status_code == 200
    assert client.get(f"{API}/filesystem/User1/{node_id}").status_code == 200

    assert client.delete(f"{API}/filesystem/User2/{node_id}").status_code == 200
    assert client.get(f"{API}/filesystem/User2/{node_id}").status_code == 404


def test_create_node_rejects_non_object_body(client: TestClient):
    response = client.post(f"{API}/filesystem/User1", json=["file"])
    assert response.status_code == 400
    assert response.json()["data"]["reason"] == "invalid-json"


def test_create_node_for_unknown_user(client: TestClient):
    response = client.post(
        f"{API}/filesystem/Nobody",
        json={"type": "directory", "name": "d", "contents": [], "permissions": {}},
    )
    assert response.status_code == 404
    assert response.json()["data"] == {"item": "Nobody", "item_name": "user"}


def test_create_node_rejects_non_finite_lock_timestamp(client: TestClient):
    """JSON 解析器接受 ``Infinity``，但锁的 createdAt 必须是有限数值。"""
    body = (
        '{"type": "file", "name": "n", "text": "", "tags": [], "permissions": {},'
        ' "lock": {"user": "User1", "client": "c", "createdAt": Infinity}}'
    )
    response = client.post(
        f"{API}/filesystem/User1",
        content=body,
        headers={"Content-Type": "application/json"},
    )
    assert response.status_code == 400
    assert response.json()["data"] == {"reason": "invalid-field-value", "field": "lock.createdAt"}

    search = client.get(f"{API}/filesystem/User1/search", params={"match": json.dumps({"name": "n"})})
    assert search.json()["data"] == []
