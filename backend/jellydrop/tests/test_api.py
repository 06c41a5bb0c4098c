"""
API端点测试模块

测试 JellyDrop API 的各个端点：项目提交、调度器状态、历史记录和隔离区查询。
"""

import time

import pytest
from fastapi.testclient import TestClient

from jellydrop.main import create_app


@pytest.fixture(name="client")
def client_fixture(test_settings):
    """创建测试客户端，生命周期内运行调度器（不启动扫描器）"""
    app = create_app(test_settings, enable_scanner=False)
    with TestClient(app) as client:
        yield client


def wait_for_history(client, count=1, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        body = client.get("/api/history").json()
        if body["total"] >= count:
            return body
        time.sleep(0.05)
    raise AssertionError("history entries not written in time")


def test_read_root(client):
    response = client.get("/")
    assert response.status_code == 200
    assert "JellyDrop" in response.json()["message"]


class TestSubmitItem:
    def test_submit_and_process(self, client, library_dirs):
        """
        Given: 投放目录中有一个电影文件
        When: 通过 API 提交
        Then: 立即返回 202，随后文件被移动并写入历史记录
        """
        source = library_dirs["drop"] / "Inception.2010.1080p.mkv"
        source.write_bytes(b"x")

        response = client.post("/api/items", json={"path": str(source)})

        assert response.status_code == 202
        data = response.json()
        assert data["kind"] == "file"
        assert data["category_hint"] is None

        body = wait_for_history(client)
        destination = library_dirs["movies"] / "Inception (2010)" / "Inception (2010).mkv"
        assert body["items"][0]["text"] == f"{source} -> {destination} (Movies)"
        assert destination.exists()

    def test_submit_with_hint(self, client, library_dirs):
        folder = library_dirs["drop"] / "Show.Name.S02E03"
        folder.mkdir()
        (folder / "episode.mkv").write_bytes(b"x")

        response = client.post("/api/items", json={"path": str(folder), "category_hint": "Shows"})

        assert response.status_code == 202
        assert response.json()["kind"] == "directory"
        assert response.json()["category_hint"] == "Shows"

    def test_submit_missing_path(self, client, library_dirs):
        response = client.post("/api/items", json={"path": str(library_dirs["drop"] / "missing.mkv")})

        assert response.status_code == 404

    def test_submit_outside_drop_folder(self, client, tmp_path):
        """
        Given: 投放目录之外的一个目录，里面有媒体文件和其他文件
        When: 通过 API 提交
        Then: 返回 403，目录和其中的文件都保持不变
        """
        folder = tmp_path / "home_user_documents"
        folder.mkdir()
        (folder / "Holiday.2019.mkv").write_bytes(b"x")
        (folder / "taxes.pdf").write_bytes(b"x")

        response = client.post("/api/items", json={"path": str(folder)})

        assert response.status_code == 403
        assert (folder / "taxes.pdf").exists()
        assert (folder / "Holiday.2019.mkv").exists()
        assert client.get("/api/status").json()["queued"] == 0

    def test_submit_nested_in_drop_folder(self, client, library_dirs):
        nested = library_dirs["drop"] / "Collection" / "Movie.2020"
        nested.mkdir(parents=True)
        (nested / "movie.mkv").write_bytes(b"x")

        response = client.post("/api/items", json={"path": str(nested)})

        assert response.status_code == 403

    def test_submit_invalid_hint(self, client, library_dirs):
        source = library_dirs["drop"] / "a.mkv"
        source.write_bytes(b"x")

        response = client.post("/api/items", json={"path": str(source), "category_hint": "Music"})

        assert response.status_code == 422


class TestStatus:
    def test_status(self, client, test_settings):
        response = client.get("/api/status")

        assert response.status_code == 200
        data = response.json()
        assert data["drop_folder"] == str(test_settings.DROP_FOLDER)
        assert data["max_workers"] == 2
        assert data["running"] == 0
        assert data["queued"] == 0
        assert data["in_flight"] == []

    def test_dispatcher_not_started(self, test_settings, library_dirs):
        source = library_dirs["drop"] / "a.mkv"
        source.write_bytes(b"x")
        client = TestClient(create_app(test_settings, enable_scanner=False))

        response = client.post("/api/items", json={"path": str(source)})

        assert response.status_code == 503


class TestHistory:
    def test_newest_first_with_limit(self, client, library_dirs):
        library_dirs["history"].parent.mkdir(parents=True, exist_ok=True)
        library_dirs["history"].write_text(
            "2025-01-01 10:00:00 - one\n"
            "2025-01-01 10:00:01 - two\n"
            "2025-01-01 10:00:02 - three\n",
            encoding="utf-8",
        )

        response = client.get("/api/history", params={"limit": 2})

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 2
        assert [item["text"] for item in data["items"]] == ["three", "two"]
        assert data["items"][0]["timestamp"] == "2025-01-01T10:00:02"

    def test_empty(self, client):
        assert client.get("/api/history").json() == {"total": 0, "items": []}

    @pytest.mark.parametrize("limit", [0, 1001])
    def test_limit_bounds(self, client, limit):
        assert client.get("/api/history", params={"limit": limit}).status_code == 422


class TestQuarantine:
    def test_lists_entries(self, client, library_dirs):
        (library_dirs["error"] / "bad.mkv").write_bytes(b"x" * 10)
        (library_dirs["error"] / "Bad.Folder").mkdir()

        response = client.get("/api/quarantine")

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 2
        by_name = {item["name"]: item for item in data["items"]}
        assert by_name["bad.mkv"]["size_bytes"] == 10
        assert by_name["bad.mkv"]["is_dir"] is False
        assert by_name["Bad.Folder"]["is_dir"] is True
        assert by_name["Bad.Folder"]["size_bytes"] is None

    def test_quarantined_item_appears(self, client, library_dirs):
        folder = library_dirs["drop"] / "Only.Text.2020"
        folder.mkdir()
        (folder / "readme.txt").write_text("x")

        client.post("/api/items", json={"path": str(folder)})
        wait_for_history(client)

        names = [item["name"] for item in client.get("/api/quarantine").json()["items"]]
        assert names == ["Only.Text.2020"]
