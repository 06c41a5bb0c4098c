"""传输历史日志模块

只追加的审计日志，记录每一次传输、隔离和删除。每行格式为
``YYYY-mm-dd HH:MM:SS - <内容>``，写入时持有排他文件锁，
多个进程（CLI 与常驻服务）可以同时追加同一个文件。
"""

from __future__ import annotations

import datetime
import time
from collections import deque
from pathlib import Path
from typing import Callable, Optional

from loguru import logger

from .models import HistoryEntry, local_now

try:
    import fcntl
except ImportError:  # Windows 没有 fcntl
    fcntl = None

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
LOCK_POLL_INTERVAL = 0.05


class HistoryLog:
    """历史日志文件的唯一写入者

    Args:
        history_file: 日志文件路径，目录和文件在首次写入时创建
        lock_timeout: 等待文件锁的最长时间（秒）
        clock: 返回当前时间的函数，测试时可替换
    """

    def __init__(
        self,
        history_file: Path,
        lock_timeout: float = 0.5,
        clock: Callable[[], datetime.datetime] = local_now,
    ):
        self.history_file = history_file
        self.lock_timeout = lock_timeout
        self._clock = clock

    def append(self, text: str) -> Optional[HistoryEntry]:
        """追加一条历史记录

        Args:
            text: 记录内容，例如 "src -> dest (Movies)"

        Returns:
            HistoryEntry: 写入成功时返回记录；拿不到锁或写入失败时返回 None
        """
        entry = HistoryEntry(timestamp=self._clock(), text=text)
        line = entry.format() + "\n"

        try:
            self.history_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.history_file, "a", encoding="utf-8") as fh:
                if fcntl is None:
                    logger.warning("当前平台不支持 fcntl，历史日志以无锁方式追加")
                    fh.write(line)
                    return entry

                if not self._acquire_lock(fh):
                    logger.warning(
                        f"{self.lock_timeout} 秒内未获取到历史日志锁，跳过记录: {text}"
                    )
                    return None
                try:
                    fh.write(line)
                    fh.flush()
                finally:
                    fcntl.flock(fh.fileno(), fcntl.LOCK_UN)
        except OSError as e:
            logger.error(f"写入历史日志失败: {self.history_file}, 错误: {e}")
            return None

        logger.debug(f"历史记录: {text}")
        return entry

    def _acquire_lock(self, fh) -> bool:
        """以非阻塞方式轮询排他锁，直到超时"""
        deadline = time.monotonic() + self.lock_timeout
        while True:
            try:
                fcntl.flock(fh.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
                return True
            except BlockingIOError:
                if time.monotonic() >= deadline:
                    return False
                time.sleep(LOCK_POLL_INTERVAL)

    def read_entries(self, limit: Optional[int] = None) -> list[HistoryEntry]:
        """读取最近的历史记录，按时间从旧到新排列

        Args:
            limit: 最多返回的条数，None 表示全部

        Returns:
            list[HistoryEntry]: 无法解析的行会被跳过
        """
        if not self.history_file.exists():
            return []

        entries: deque[HistoryEntry] = deque(maxlen=limit)
        with open(self.history_file, "r", encoding="utf-8", errors="replace") as fh:
            for line in fh:
                entry = parse_history_line(line)
                if entry is not None:
                    entries.append(entry)
        return list(entries)


def parse_history_line(line: str) -> Optional[HistoryEntry]:
    """解析一行历史记录，格式不符时返回 None"""
    line = line.rstrip("\n")
    stamp, sep, text = line.partition(" - ")
    if not sep:
        return None
    try:
        timestamp = datetime.datetime.strptime(stamp, TIMESTAMP_FORMAT)
    except ValueError:
        return None
    return HistoryEntry(timestamp=timestamp, text=text)
