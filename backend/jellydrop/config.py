from __future__ import annotations

import os
import re
from enum import Enum
from pathlib import Path
from typing import Optional

from loguru import logger
from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .core.classifier import DEFAULT_TAG_BLACKLIST, wrap_tag_pattern
from .core.errors import ConfigurationError


class LogLevel(str, Enum):
    """日志级别枚举"""
    TRACE = "TRACE"
    DEBUG = "DEBUG"
    INFO = "INFO"
    SUCCESS = "SUCCESS"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


def parse_extensions(value: str) -> frozenset[str]:
    """把逗号或空格分隔的扩展名字符串解析为小写集合

    Args:
        value: 例如 ".mkv,.MP4 avi"

    Returns:
        frozenset[str]: 统一带点号的小写扩展名集合
    """
    extensions = set()
    for part in re.split(r"[,\s]+", value):
        part = part.strip().lower()
        if not part:
            continue
        if not part.startswith("."):
            part = f".{part}"
        extensions.add(part)
    return frozenset(extensions)


class Settings(BaseSettings):
    """项目全局配置。

    所有字段均可通过环境变量或 `.env` 文件注入。实例创建后不可修改，
    由 CLI 或服务入口创建一次后传给各个组件。
    """

    # —— 目录 ——
    DROP_FOLDER: Path = Field(..., description="监视的投放目录")
    DEST_DIR_MOVIES: Path = Field(..., description="电影库根目录")
    DEST_DIR_SHOWS: Path = Field(..., description="剧集库根目录")
    ERROR_DIR: Path = Field(..., description="隔离区目录")
    HISTORY_FILE: Path = Field(
        default=Path.home() / ".jellydrop" / "jellydrop_history.log",
        description="传输历史日志文件",
    )

    # —— 文件类型 ——
    MAIN_MEDIA_EXTENSIONS: str = Field(
        default=".mkv,.mp4,.avi,.mov,.wmv,.flv,.webm",
        description="主媒体文件扩展名，逗号分隔格式",
    )
    ASSOCIATED_FILE_EXTENSIONS: str = Field(
        default=".srt,.sub,.ass,.idx,.vtt,.nfo",
        description="随主文件一起移动的附属文件扩展名，逗号分隔格式",
    )
    MEDIA_TAG_BLACKLIST: str = Field(
        default=DEFAULT_TAG_BLACKLIST,
        description="从标题中剔除的标签正则（不区分大小写，用 | 分隔）",
    )

    # —— 稳定性检查 ——
    STABLE_CHECKS: int = Field(default=3, ge=1, le=100, description="连续相同读数的次数")
    STABLE_SLEEP_INTERVAL: float = Field(default=10, ge=0, description="两次读数之间的等待时间（秒）")

    # —— 传输与并发 ——
    TRANSFER_TIMEOUT: float = Field(default=600, gt=0, description="跨文件系统复制的超时时间（秒）")
    MAX_CONCURRENT_PROCESSORS: int = Field(default=2, ge=1, le=16, description="同时处理的项目数量")
    SCAN_INTERVAL_SECONDS: float = Field(default=2, gt=0, description="投放目录两次扫描之间的等待时间（秒）")
    FAILED_ITEM_COOLDOWN_SECONDS: float = Field(
        default=600,
        ge=0,
        description="处理失败且仍留在投放目录中的项目，再次提交前的等待时间（秒）",
    )
    HISTORY_LOCK_TIMEOUT: float = Field(default=0.5, ge=0, description="获取历史日志文件锁的最长等待时间（秒）")
    DELETE_SOURCE_LEFTOVERS: bool = Field(
        default=True,
        description="传输成功后是否删除源目录中剩余的文件",
    )

    # —— 日志 ——
    LOG_LEVEL: LogLevel = Field(LogLevel.INFO, description="日志级别")
    LOG_FILE: Optional[Path] = Field(default=None, description="日志文件路径，为空时只输出到终端")
    LOG_RETENTION_DAYS: int = Field(default=7, ge=1, description="日志文件保留天数")

    # —— Jellyfin ——
    JELLYFIN_SERVER: Optional[str] = Field(default=None, description="Jellyfin 服务器地址")
    JELLYFIN_API_KEY: Optional[str] = Field(default=None, description="Jellyfin API 密钥")
    ENABLE_JELLYFIN_SCAN_MOVIES: bool = Field(default=False, description="电影传输成功后刷新媒体库")
    ENABLE_JELLYFIN_SCAN_SHOWS: bool = Field(default=False, description="剧集传输成功后刷新媒体库")

    # —— HTTP 服务 ——
    API_HOST: str = Field(default="127.0.0.1", description="HTTP 服务监听地址")
    API_PORT: int = Field(default=8000, ge=1, le=65535, description="HTTP 服务监听端口")

    model_config = SettingsConfigDict(
        env_file=(".env", ".env.local"),
        env_file_encoding="utf-8",
        env_prefix="",
        case_sensitive=True,
        validate_default=True,
        frozen=True,
    )

    # —— 验证器 ——
    @field_validator("DROP_FOLDER", "DEST_DIR_MOVIES", "DEST_DIR_SHOWS", "ERROR_DIR")
    @classmethod
    def validate_directory(cls, v: Path) -> Path:
        """验证目录是否存在且可访问"""
        v = v.expanduser()
        if not v.exists():
            try:
                v.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise ValueError(f"无法创建目录 {v}: {e}")
        if not v.is_dir():
            raise ValueError(f"路径 {v} 不是目录")
        if not os.access(v, os.R_OK | os.W_OK):
            raise ValueError(f"目录 {v} 缺少读写权限")
        return v.resolve()  # 返回绝对路径

    @field_validator("HISTORY_FILE", "LOG_FILE")
    @classmethod
    def validate_file_path(cls, v: Optional[Path]) -> Optional[Path]:
        """文件路径只做展开，父目录在首次写入时创建"""
        if v is None:
            return v
        return v.expanduser().resolve()

    @field_validator("MAIN_MEDIA_EXTENSIONS", "ASSOCIATED_FILE_EXTENSIONS")
    @classmethod
    def validate_extensions(cls, v: str) -> str:
        """验证扩展名格式"""
        extensions = [ext.strip() for ext in re.split(r"[,\s]+", v) if ext.strip()]
        if not extensions:
            raise ValueError("扩展名列表不能为空")

        validated_extensions = []
        for extension in extensions:
            if not extension.startswith("."):
                raise ValueError(f"扩展名必须以'.'开头: {extension}")
            ext_body = extension[1:]
            if not ext_body:
                raise ValueError(f"扩展名不能只有点号: {extension}")
            if not ext_body.isalnum():
                raise ValueError(f"扩展名只能包含字母和数字: {extension}")
            validated_extensions.append(extension.lower())

        return ",".join(validated_extensions)

    @field_validator("MEDIA_TAG_BLACKLIST")
    @classmethod
    def validate_tag_blacklist(cls, v: str) -> str:
        """标签黑名单本身和按单词边界包装后的形式都必须是合法的正则表达式"""
        try:
            re.compile(v)
            wrap_tag_pattern(v)
        except re.error as e:
            raise ValueError(f"标签黑名单不是合法的正则表达式: {e}")
        return v

    @field_validator("JELLYFIN_SERVER")
    @classmethod
    def validate_jellyfin_server(cls, v: Optional[str]) -> Optional[str]:
        """验证 Jellyfin 地址格式"""
        if v is None or not v.strip():
            return None
        v = v.strip()
        if not (v.startswith("http://") or v.startswith("https://")):
            raise ValueError(f"Jellyfin 地址必须以http://或https://开头: {v}")
        return v.rstrip("/")

    @property
    def main_media_extensions(self) -> frozenset[str]:
        return parse_extensions(self.MAIN_MEDIA_EXTENSIONS)

    @property
    def associated_file_extensions(self) -> frozenset[str]:
        return parse_extensions(self.ASSOCIATED_FILE_EXTENSIONS)

    @property
    def jellyfin_enabled(self) -> bool:
        """是否配置了 Jellyfin 并至少为一个分类开启了刷新"""
        return bool(
            self.JELLYFIN_SERVER
            and self.JELLYFIN_API_KEY
            and (self.ENABLE_JELLYFIN_SCAN_MOVIES or self.ENABLE_JELLYFIN_SCAN_SHOWS)
        )


def load_settings(**overrides) -> Settings:
    """创建配置实例，校验失败时转换为 ConfigurationError

    Args:
        **overrides: 直接传入的字段值，优先级高于环境变量

    Returns:
        Settings实例

    Raises:
        ConfigurationError: 配置缺失或校验失败
    """
    try:
        settings = Settings(**overrides)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in e.errors()
        )
        raise ConfigurationError(f"配置无效: {problems}") from e
    logger.debug(f"配置加载完成: 投放目录={settings.DROP_FOLDER}")
    return settings


__all__ = [
    "Settings",
    "LogLevel",
    "parse_extensions",
    "load_settings",
]
