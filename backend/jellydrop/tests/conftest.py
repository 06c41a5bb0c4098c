"""测试配置和共享fixture"""

from pathlib import Path

import pytest

from jellydrop.config import Settings
from jellydrop.core.history import HistoryLog
from jellydrop.services.media import (
    MediaPipeline,
    QuarantineManager,
    StabilityMonitor,
    TransferEngine,
)


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """清理可能影响 Settings 的环境变量，并在临时目录中运行（避免读取项目的 .env）"""
    for name in Settings.model_fields:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def library_dirs(tmp_path) -> dict[str, Path]:
    """创建投放目录、媒体库和隔离区目录"""
    dirs = {
        "drop": tmp_path / "drop",
        "movies": tmp_path / "library" / "Movies",
        "shows": tmp_path / "library" / "Shows",
        "error": tmp_path / "quarantine",
    }
    for path in dirs.values():
        path.mkdir(parents=True)
    dirs["history"] = tmp_path / "state" / "history.log"
    return dirs


@pytest.fixture
def test_settings(library_dirs) -> Settings:
    """测试用配置：稳定性检查不等待"""
    return Settings(
        DROP_FOLDER=library_dirs["drop"],
        DEST_DIR_MOVIES=library_dirs["movies"],
        DEST_DIR_SHOWS=library_dirs["shows"],
        ERROR_DIR=library_dirs["error"],
        HISTORY_FILE=library_dirs["history"],
        STABLE_CHECKS=2,
        STABLE_SLEEP_INTERVAL=0,
        MAX_CONCURRENT_PROCESSORS=2,
    )


@pytest.fixture
def history(library_dirs) -> HistoryLog:
    return HistoryLog(library_dirs["history"])


@pytest.fixture
def make_pipeline(test_settings, history):
    """创建处理组件的工厂，可替换稳定性检查器和监听器"""

    def _make(stability: StabilityMonitor | None = None, listeners=(), delete_leftovers: bool = True) -> MediaPipeline:
        return MediaPipeline(
            stability or StabilityMonitor(max_checks=2, interval=0),
            TransferEngine.from_settings(test_settings, history),
            QuarantineManager(test_settings.ERROR_DIR, history),
            movies_root=test_settings.DEST_DIR_MOVIES,
            shows_root=test_settings.DEST_DIR_SHOWS,
            listeners=listeners,
            delete_leftovers=delete_leftovers,
        )

    return _make
