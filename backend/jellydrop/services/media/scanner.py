"""
扫描器模块

定期列出投放目录的顶层条目，把新出现的文件和目录提交给调度器。
未稳定的项目留在原处，下一次扫描时再检查。
"""

import asyncio
import fnmatch
import time
from pathlib import Path
from typing import Callable, List

from loguru import logger

from ...config import Settings
from ...core.classifier import determine_category
from ...core.models import MediaItem
from .types import OutcomeStatus, ProcessOutcome

# 常量定义
SCANNER_LOG_PREFIX = "[Scanner]"

# 系统文件和下载中的临时文件
IGNORED_NAMES = frozenset({".DS_Store", "desktop.ini", ".stfolder", ".stversions", ".localized"})
IGNORED_PATTERNS = ("._*", "*.part", "*.crdownload")


def _should_skip(entry: Path) -> tuple[bool, str]:
    """
    判断投放目录中的条目是否应跳过。

    Returns:
        tuple[bool, str]: (是否跳过, 原因)
    """
    name = entry.name
    if name in IGNORED_NAMES:
        return True, "系统文件"
    for pattern in IGNORED_PATTERNS:
        if fnmatch.fnmatch(name, pattern):
            return True, f"匹配忽略规则 {pattern}"
    if not (entry.is_file() or entry.is_dir()):
        return True, "不是文件或目录"
    return False, ""


class FailedItemBackoff:
    """
    记录处理失败但仍留在投放目录中的项目（例如隔离本身失败），
    冷却期内扫描器不再重新提交，避免重复的稳定性检查、错误日志和通知。

    Args:
        cooldown: 冷却时间（秒）
        clock: 单调时钟
    """

    def __init__(self, cooldown: float, clock: Callable[[], float] = time.monotonic):
        self.cooldown = cooldown
        self._clock = clock
        self._failed_at: dict[Path, float] = {}

    def record(self, outcome: ProcessOutcome) -> None:
        if outcome.status == OutcomeStatus.FAILED and not outcome.deferred:
            self._failed_at[outcome.item_path] = self._clock()
            logger.warning(
                f"{SCANNER_LOG_PREFIX} 项目处理失败，需要人工处理，"
                f"{self.cooldown}秒内不再提交: {outcome.item_path}"
            )
        else:
            self._failed_at.pop(outcome.item_path, None)

    def on_done(self, future: asyncio.Future) -> None:
        """调度器 Future 的完成回调"""
        if future.cancelled() or future.exception() is not None:
            return
        self.record(future.result())

    def blocked_paths(self) -> frozenset[Path]:
        """仍在冷却期内的路径，过期的记录被移除"""
        now = self._clock()
        expired = [path for path, failed_at in self._failed_at.items() if now - failed_at >= self.cooldown]
        for path in expired:
            del self._failed_at[path]
        return frozenset(self._failed_at)


def scan_drop_folder_once(
    settings: Settings,
    is_active: Callable[[Path], bool] = lambda path: False,
) -> List[MediaItem]:
    """
    扫描投放目录一次，返回待处理的项目。

    Args:
        settings: 应用配置
        is_active: 判断路径是否已在处理中的函数

    Returns:
        List[MediaItem]: 新发现的项目，分类提示为根据名称自动判断的结果
    """
    drop_folder = settings.DROP_FOLDER
    logger.debug(f"{SCANNER_LOG_PREFIX} 开始扫描目录: {drop_folder}")
    items: List[MediaItem] = []

    if not drop_folder.is_dir():
        logger.warning(f"{SCANNER_LOG_PREFIX} 目录不存在或不是有效目录: {drop_folder}")
        return items

    try:
        entries = sorted(drop_folder.iterdir())
    except OSError as e:
        logger.error(f"{SCANNER_LOG_PREFIX} 扫描目录时发生异常 {drop_folder}: {e}")
        return items

    for entry in entries:
        skip, reason = _should_skip(entry)
        if skip:
            logger.trace(f"{SCANNER_LOG_PREFIX} 跳过 {entry.name}: {reason}")
            continue
        if is_active(entry):
            logger.trace(f"{SCANNER_LOG_PREFIX} 跳过 {entry.name}: 正在处理中")
            continue

        items.append(
            MediaItem.from_path(
                entry,
                determine_category(entry.name),
                defer_if_unstable=True,
            )
        )
        logger.debug(f"{SCANNER_LOG_PREFIX} 发现项目: {entry.name}")

    logger.debug(f"{SCANNER_LOG_PREFIX} 扫描完成 - 新项目: {len(items)}")
    return items


async def background_scanner_task(
    settings: Settings,
    dispatcher,
    stop_event: asyncio.Event | None = None,
) -> None:
    """
    后台扫描任务，定期扫描投放目录并把新项目交给调度器。

    Args:
        settings: 应用配置对象
        dispatcher: 提供 is_active() 和 enqueue() 的调度器
        stop_event: 可选的停止事件，用于优雅关闭
    """
    if stop_event is None:
        stop_event = asyncio.Event()

    logger.info(
        f"{SCANNER_LOG_PREFIX} 后台扫描任务启动 - "
        f"投放目录: {settings.DROP_FOLDER}, "
        f"扫描间隔: {settings.SCAN_INTERVAL_SECONDS}秒"
    )
    scan_count = 0
    backoff = FailedItemBackoff(settings.FAILED_ITEM_COOLDOWN_SECONDS)

    try:
        while not stop_event.is_set():
            scan_count += 1
            try:
                blocked = backoff.blocked_paths()
                items = await asyncio.to_thread(
                    scan_drop_folder_once,
                    settings,
                    lambda path: path in blocked or dispatcher.is_active(path),
                )
                for item in items:
                    dispatcher.enqueue(item).add_done_callback(backoff.on_done)
                if items:
                    logger.info(f"{SCANNER_LOG_PREFIX} 第 {scan_count} 次扫描提交 {len(items)} 个项目")
            except Exception as e:
                logger.error(f"{SCANNER_LOG_PREFIX} 第 {scan_count} 次扫描失败: {e}")

            # 等待指定间隔，同时检查停止事件
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=settings.SCAN_INTERVAL_SECONDS)
            except asyncio.TimeoutError:
                pass

    except asyncio.CancelledError:
        logger.info(f"{SCANNER_LOG_PREFIX} 后台扫描任务被取消")
        raise
    finally:
        logger.info(
            f"{SCANNER_LOG_PREFIX} 后台扫描任务结束 - "
            f"总共执行了 {scan_count} 次扫描"
        )
