"""
Jellyfin 媒体库刷新通知测试

使用 mock 的 requests 会话，不发送真实网络请求。
"""

from unittest.mock import MagicMock

import pytest
import requests

from jellydrop.config import Settings
from jellydrop.core.models import MediaCategory
from jellydrop.services.notifications import (
    JellyfinLibraryScanner,
    build_listeners,
)


@pytest.fixture(autouse=True)
def no_retry_wait(mocker):
    """去掉重试之间的等待"""
    mocker.patch.object(JellyfinLibraryScanner._post_refresh.retry, "sleep", lambda _seconds: None)


def make_scanner(status_code=204, categories=frozenset(MediaCategory)):
    session = MagicMock(spec=requests.Session)
    session.post.return_value = MagicMock(status_code=status_code)
    scanner = JellyfinLibraryScanner("http://jellyfin:8096/", "secret", categories, session=session)
    return scanner, session


class TestJellyfinLibraryScanner:
    def test_refresh_url_strips_trailing_slash(self):
        scanner, _ = make_scanner()

        assert scanner.refresh_url == "http://jellyfin:8096/Library/Refresh"

    def test_trigger_scan_success(self):
        scanner, session = make_scanner(204)

        assert scanner.trigger_scan(MediaCategory.MOVIES) is True
        session.post.assert_called_once_with(
            "http://jellyfin:8096/Library/Refresh",
            headers={"X-Emby-Token": "secret"},
            timeout=(10, 30),
        )

    @pytest.mark.parametrize("status_code", [400, 401, 403, 404, 500, 502])
    def test_trigger_scan_error_status(self, status_code):
        scanner, _ = make_scanner(status_code)

        assert scanner.trigger_scan(MediaCategory.SHOWS) is False

    def test_connection_error_is_retried_then_reported(self):
        scanner, session = make_scanner()
        session.post.side_effect = requests.exceptions.ConnectionError("refused")

        assert scanner.trigger_scan(MediaCategory.MOVIES) is False
        assert session.post.call_count == 3

    def test_transient_timeout_recovers(self):
        scanner, session = make_scanner()
        session.post.side_effect = [requests.exceptions.Timeout("slow"), MagicMock(status_code=200)]

        assert scanner.trigger_scan(MediaCategory.MOVIES) is True
        assert session.post.call_count == 2

    def test_only_enabled_categories_trigger(self):
        scanner, session = make_scanner(categories=frozenset({MediaCategory.SHOWS}))

        scanner.on_transfer_success(MediaCategory.MOVIES)
        session.post.assert_not_called()

        scanner.on_transfer_success(MediaCategory.SHOWS)
        session.post.assert_called_once()


class TestBuildListeners:
    def test_disabled_without_credentials(self, test_settings):
        assert build_listeners(test_settings) == []

    def test_disabled_without_categories(self, library_dirs):
        settings = Settings(
            DROP_FOLDER=library_dirs["drop"],
            DEST_DIR_MOVIES=library_dirs["movies"],
            DEST_DIR_SHOWS=library_dirs["shows"],
            ERROR_DIR=library_dirs["error"],
            JELLYFIN_SERVER="http://jellyfin:8096",
            JELLYFIN_API_KEY="secret",
        )

        assert build_listeners(settings) == []

    def test_enabled(self, library_dirs):
        settings = Settings(
            DROP_FOLDER=library_dirs["drop"],
            DEST_DIR_MOVIES=library_dirs["movies"],
            DEST_DIR_SHOWS=library_dirs["shows"],
            ERROR_DIR=library_dirs["error"],
            JELLYFIN_SERVER="http://jellyfin:8096/",
            JELLYFIN_API_KEY="secret",
            ENABLE_JELLYFIN_SCAN_SHOWS=True,
        )

        [listener] = build_listeners(settings)

        assert isinstance(listener, JellyfinLibraryScanner)
        assert listener.categories == frozenset({MediaCategory.SHOWS})
        assert listener.refresh_url == "http://jellyfin:8096/Library/Refresh"
