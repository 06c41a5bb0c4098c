"""
配置模块测试

测试 Settings 的默认值、环境变量加载和各个验证器。
"""

import pytest
from pydantic import ValidationError

from jellydrop.config import LogLevel, Settings, load_settings, parse_extensions
from jellydrop.core.errors import ConfigurationError


@pytest.fixture
def required_env(monkeypatch, library_dirs):
    """通过环境变量提供四个必需目录"""
    monkeypatch.setenv("DROP_FOLDER", str(library_dirs["drop"]))
    monkeypatch.setenv("DEST_DIR_MOVIES", str(library_dirs["movies"]))
    monkeypatch.setenv("DEST_DIR_SHOWS", str(library_dirs["shows"]))
    monkeypatch.setenv("ERROR_DIR", str(library_dirs["error"]))
    return library_dirs


class TestParseExtensions:
    def test_mixed_separators_and_case(self):
        assert parse_extensions(".mkv,.MP4 avi") == frozenset({".mkv", ".mp4", ".avi"})

    def test_empty(self):
        assert parse_extensions("") == frozenset()


class TestSettingsDefaults:
    def test_defaults(self, required_env):
        settings = Settings()

        assert settings.DROP_FOLDER == required_env["drop"].resolve()
        assert settings.STABLE_CHECKS == 3
        assert settings.STABLE_SLEEP_INTERVAL == 10
        assert settings.MAX_CONCURRENT_PROCESSORS == 2
        assert settings.TRANSFER_TIMEOUT == 600
        assert settings.FAILED_ITEM_COOLDOWN_SECONDS == 600
        assert settings.DELETE_SOURCE_LEFTOVERS is True
        assert settings.LOG_LEVEL == LogLevel.INFO
        assert settings.LOG_FILE is None
        assert settings.HISTORY_FILE.name == "jellydrop_history.log"
        assert ".mkv" in settings.main_media_extensions
        assert ".srt" in settings.associated_file_extensions
        assert settings.jellyfin_enabled is False

    def test_env_values(self, required_env, monkeypatch):
        monkeypatch.setenv("STABLE_CHECKS", "5")
        monkeypatch.setenv("MAX_CONCURRENT_PROCESSORS", "4")
        monkeypatch.setenv("MAIN_MEDIA_EXTENSIONS", ".MKV, .mp4")
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")

        settings = Settings()

        assert settings.STABLE_CHECKS == 5
        assert settings.MAX_CONCURRENT_PROCESSORS == 4
        assert settings.main_media_extensions == frozenset({".mkv", ".mp4"})
        assert settings.LOG_LEVEL == LogLevel.DEBUG

    def test_dotenv_file(self, library_dirs, tmp_path):
        (tmp_path / ".env").write_text(
            f"DROP_FOLDER={library_dirs['drop']}\n"
            f"DEST_DIR_MOVIES={library_dirs['movies']}\n"
            f"DEST_DIR_SHOWS={library_dirs['shows']}\n"
            f"ERROR_DIR={library_dirs['error']}\n"
            "SCAN_INTERVAL_SECONDS=7\n"
        )

        assert Settings().SCAN_INTERVAL_SECONDS == 7

    def test_frozen(self, test_settings):
        with pytest.raises(ValidationError):
            test_settings.STABLE_CHECKS = 10


class TestSettingsValidation:
    def test_missing_directories_are_created(self, tmp_path, required_env, monkeypatch):
        monkeypatch.setenv("ERROR_DIR", str(tmp_path / "new" / "errors"))

        settings = Settings()

        assert settings.ERROR_DIR.is_dir()

    def test_directory_is_a_file(self, tmp_path, required_env, monkeypatch):
        blocker = tmp_path / "a_file"
        blocker.write_text("x")
        monkeypatch.setenv("DEST_DIR_MOVIES", str(blocker))

        with pytest.raises(ValidationError, match="不是目录"):
            Settings()

    @pytest.mark.parametrize("value", ["mkv", ".", ".mk-v", " , "])
    def test_invalid_extensions(self, required_env, monkeypatch, value):
        monkeypatch.setenv("MAIN_MEDIA_EXTENSIONS", value)

        with pytest.raises(ValidationError):
            Settings()

    def test_invalid_tag_blacklist(self, required_env, monkeypatch):
        monkeypatch.setenv("MEDIA_TAG_BLACKLIST", "1080p|(unclosed")

        with pytest.raises(ValidationError, match="正则"):
            Settings()

    def test_tag_blacklist_with_inline_global_flag(self, required_env, monkeypatch):
        monkeypatch.setenv("MEDIA_TAG_BLACKLIST", r"(?i)1080p|x265")

        with pytest.raises(ValidationError, match="MEDIA_TAG_BLACKLIST"):
            Settings()

    def test_jellyfin_server_must_be_http(self, required_env, monkeypatch):
        monkeypatch.setenv("JELLYFIN_SERVER", "jellyfin:8096")

        with pytest.raises(ValidationError):
            Settings()

    def test_jellyfin_enabled(self, required_env, monkeypatch):
        monkeypatch.setenv("JELLYFIN_SERVER", "https://media.example.com/")
        monkeypatch.setenv("JELLYFIN_API_KEY", "secret")
        monkeypatch.setenv("ENABLE_JELLYFIN_SCAN_MOVIES", "true")

        settings = Settings()

        assert settings.JELLYFIN_SERVER == "https://media.example.com"
        assert settings.jellyfin_enabled is True

    @pytest.mark.parametrize("name,value", [
        ("STABLE_CHECKS", "0"),
        ("MAX_CONCURRENT_PROCESSORS", "0"),
        ("TRANSFER_TIMEOUT", "0"),
        ("API_PORT", "70000"),
    ])
    def test_numeric_bounds(self, required_env, monkeypatch, name, value):
        monkeypatch.setenv(name, value)

        with pytest.raises(ValidationError):
            Settings()


class TestLoadSettings:
    def test_missing_required_raises_configuration_error(self):
        with pytest.raises(ConfigurationError) as exc_info:
            load_settings()

        assert "DROP_FOLDER" in exc_info.value.message

    def test_overrides(self, library_dirs):
        settings = load_settings(
            DROP_FOLDER=library_dirs["drop"],
            DEST_DIR_MOVIES=library_dirs["movies"],
            DEST_DIR_SHOWS=library_dirs["shows"],
            ERROR_DIR=library_dirs["error"],
            STABLE_CHECKS=1,
        )

        assert settings.STABLE_CHECKS == 1

    def test_inline_flag_blacklist_aborts_loading(self, library_dirs):
        with pytest.raises(ConfigurationError) as exc_info:
            load_settings(
                DROP_FOLDER=library_dirs["drop"],
                DEST_DIR_MOVIES=library_dirs["movies"],
                DEST_DIR_SHOWS=library_dirs["shows"],
                ERROR_DIR=library_dirs["error"],
                MEDIA_TAG_BLACKLIST=r"(?i)1080p|x265",
            )

        assert "MEDIA_TAG_BLACKLIST" in exc_info.value.message
