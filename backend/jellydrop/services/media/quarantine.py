"""隔离区管理模块

把无法处理的项目移动到隔离目录，名称冲突时追加唯一后缀，从不覆盖已有条目。
"""

from __future__ import annotations

import datetime
import os
import random
import shutil
from pathlib import Path
from typing import Callable

from loguru import logger

from ...core.errors import QuarantineError
from ...core.history import HistoryLog
from ...core.models import QuarantineRecord, local_now


class QuarantineManager:
    """隔离区管理器

    Args:
        error_dir: 隔离目录
        history: 历史日志
        clock: 返回当前时间的函数，用于生成唯一后缀
    """

    def __init__(
        self,
        error_dir: Path,
        history: HistoryLog,
        clock: Callable[[], datetime.datetime] = local_now,
    ):
        self.error_dir = error_dir
        self.history = history
        self._clock = clock

    def _ensure_error_dir(self) -> None:
        if not self.error_dir.is_dir():
            logger.info(f"隔离目录不存在，正在创建: {self.error_dir}")
            try:
                self.error_dir.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise QuarantineError(f"cannot create quarantine directory {self.error_dir}: {e}") from e
        if not os.access(self.error_dir, os.W_OK):
            raise QuarantineError(f"quarantine directory is not writable: {self.error_dir}")

    def unique_destination(self, source: Path) -> Path:
        """返回隔离区中未被占用的目标路径

        冲突时使用 ``<stem>_failed_<YYYYmmdd_HHMMSS>_<随机数>[<ext>]``，文件保留扩展名。
        """
        destination = self.error_dir / source.name
        if not destination.exists():
            return destination

        if source.is_file() and source.suffix:
            stem, ext = source.stem, source.suffix
        else:
            stem, ext = source.name, ""
        while True:
            suffix = f"_failed_{self._clock():%Y%m%d_%H%M%S}_{random.randint(0, 32767)}"
            destination = self.error_dir / f"{stem}{suffix}{ext}"
            if not destination.exists():
                logger.warning(f"隔离区已有同名条目，使用唯一名称: {destination.name}")
                return destination

    def quarantine(self, path: Path, reason: str) -> QuarantineRecord:
        """把项目移动到隔离区

        Args:
            path: 待隔离的文件或目录
            reason: 隔离原因，写入历史记录

        Returns:
            QuarantineRecord: 源路径已不存在时 destination_path 为 None

        Raises:
            QuarantineError: 无法创建隔离目录或移动失败，项目保留在原处
        """
        ctx_logger = logger.bind(item=path.name)
        ctx_logger.warning(f"隔离项目，原因: {reason}")

        self._ensure_error_dir()

        if not os.path.lexists(path):
            ctx_logger.info(f"源路径已不存在，无需隔离: {path}")
            return QuarantineRecord(original_path=path, destination_path=None, reason=reason)

        destination = self.unique_destination(path)
        try:
            shutil.move(os.fspath(path), os.fspath(destination))
        except OSError as e:
            ctx_logger.error(f"移动到隔离区失败，需要人工处理: {path} -> {destination}, 错误: {e}")
            raise QuarantineError(f"failed to move {path} to quarantine: {e}") from e

        ctx_logger.info(f"已移动到隔离区: {destination}")
        self.history.append(f"{path} -> {destination} (QUARANTINED: {reason})")
        return QuarantineRecord(original_path=path, destination_path=destination, reason=reason)

    def list_entries(self) -> list[Path]:
        """列出隔离区中的条目，按名称排序"""
        if not self.error_dir.is_dir():
            return []
        return sorted(self.error_dir.iterdir())
