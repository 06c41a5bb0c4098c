"""媒体项目处理器模块

对单个项目执行完整的处理流水线：
存在性检查 -> 稳定性检查 -> 分类 -> 生成目标路径 -> 传输 -> 清理源目录。
任何阶段失败都转入隔离区；隔离本身失败时项目留在原处，结果为 FAILED。
"""

from __future__ import annotations

import asyncio
import re
from pathlib import Path
from typing import Iterable, Optional

from loguru import logger

from ...config import Settings
from ...core.classifier import classify, compile_tag_blacklist
from ...core.errors import (
    ItemVanishedError,
    JellyDropError,
    QuarantineError,
    StabilityTimeoutError,
    TransferError,
)
from ...core.history import HistoryLog
from ...core.models import ItemKind, MediaCategory, MediaItem
from ..notifications import OutcomeListener, build_listeners
from .path_generator import generate_destination_template
from .quarantine import QuarantineManager
from .stability import StabilityMonitor, StabilityStatus
from .transfer_engine import TransferEngine
from .types import OutcomeStatus, ProcessOutcome


class MediaPipeline:
    """一次运行期间共享的处理组件，由 Settings 创建一次

    Args:
        stability: 稳定性监视器
        engine: 传输引擎
        quarantine: 隔离区管理器
        movies_root: 电影库根目录
        shows_root: 剧集库根目录
        tag_blacklist: 编译好的标签黑名单
        listeners: 处理结果监听器
        delete_leftovers: 传输成功后是否删除源目录剩余内容
    """

    def __init__(
        self,
        stability: StabilityMonitor,
        engine: TransferEngine,
        quarantine: QuarantineManager,
        *,
        movies_root: Path,
        shows_root: Path,
        tag_blacklist: Optional[re.Pattern[str]] = None,
        listeners: Iterable[OutcomeListener] = (),
        delete_leftovers: bool = True,
    ):
        self.stability = stability
        self.engine = engine
        self.quarantine = quarantine
        self.movies_root = movies_root
        self.shows_root = shows_root
        self.tag_blacklist = tag_blacklist
        self.listeners = list(listeners)
        self.delete_leftovers = delete_leftovers
        self._background: set[asyncio.Task] = set()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        listeners: Optional[Iterable[OutcomeListener]] = None,
    ) -> "MediaPipeline":
        history = HistoryLog(settings.HISTORY_FILE, settings.HISTORY_LOCK_TIMEOUT)
        return cls(
            StabilityMonitor(settings.STABLE_CHECKS, settings.STABLE_SLEEP_INTERVAL),
            TransferEngine.from_settings(settings, history),
            QuarantineManager(settings.ERROR_DIR, history),
            movies_root=settings.DEST_DIR_MOVIES,
            shows_root=settings.DEST_DIR_SHOWS,
            tag_blacklist=compile_tag_blacklist(settings.MEDIA_TAG_BLACKLIST),
            listeners=build_listeners(settings) if listeners is None else listeners,
            delete_leftovers=settings.DELETE_SOURCE_LEFTOVERS,
        )

    @property
    def history(self) -> HistoryLog:
        return self.engine.history

    def schedule_library_refresh(self, category: MediaCategory) -> None:
        """在后台通知监听器有新内容入库，不阻塞当前项目"""
        for listener in self.listeners:
            task = asyncio.create_task(_call_listener(listener.on_transfer_success, category))
            self._background.add(task)
            task.add_done_callback(self._background.discard)

    async def notify_outcome(self, outcome: ProcessOutcome) -> None:
        for listener in self.listeners:
            await _call_listener(listener.on_outcome, outcome)

    async def wait_for_background(self) -> None:
        """等待所有后台通知完成"""
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)


async def _call_listener(callback, *args) -> None:
    try:
        await asyncio.to_thread(callback, *args)
    except Exception as e:
        logger.error(f"监听器 {callback.__qualname__} 执行失败: {e}")


async def _quarantine_item(
    item: MediaItem,
    reason: str,
    pipeline: MediaPipeline,
) -> ProcessOutcome:
    """隔离项目并返回对应的处理结果"""
    ctx_logger = logger.bind(item=item.name)
    try:
        record = await asyncio.to_thread(pipeline.quarantine.quarantine, item.path, reason)
    except QuarantineError as e:
        ctx_logger.error(f"隔离失败，项目保留在原处: {e.message}")
        return ProcessOutcome(
            status=OutcomeStatus.FAILED,
            item_path=item.path,
            reason=f"{reason}; {e.message}",
        )
    ctx_logger.warning(f"项目已隔离: {reason}")
    return ProcessOutcome(
        status=OutcomeStatus.QUARANTINED,
        item_path=item.path,
        destination=record.destination_path,
        reason=reason,
    )


async def process_media_item(item: MediaItem, pipeline: MediaPipeline) -> ProcessOutcome:
    """处理单个媒体项目的核心函数

    Args:
        item: 待处理的项目
        pipeline: 共享的处理组件

    Returns:
        ProcessOutcome: SUCCESS / QUARANTINED / FAILED

    处理流程：
    1. 确认项目存在
    2. 等待项目稳定（扫描器提交的项目未稳定时延后处理）
    3. 根据名称分类并生成目标路径
    4. 传输主文件和附属文件
    5. 删除源目录剩余内容
    """
    ctx_logger = logger.bind(item=item.name)
    ctx_logger.info(f"开始处理项目: {item.path} ({item.kind})")

    if not item.path.exists():
        ctx_logger.warning(f"项目不存在: {item.path}")
        outcome = ProcessOutcome(OutcomeStatus.FAILED, item.path, reason="item does not exist")
        await pipeline.notify_outcome(outcome)
        return outcome

    try:
        # 第一步：稳定性检查
        stability = await pipeline.stability.check(item.path)
        if stability.status == StabilityStatus.VANISHED:
            raise ItemVanishedError()
        if not stability.stable:
            if item.defer_if_unstable:
                ctx_logger.info("项目仍在写入，留到下一次扫描")
                return ProcessOutcome(
                    OutcomeStatus.FAILED, item.path, reason="not yet stable, deferred", deferred=True
                )
            raise StabilityTimeoutError(
                f"stability timeout: still changing after {pipeline.stability.max_checks} checks"
            )

        # 第二步：分类
        result = classify(
            item.name,
            item.category_hint,
            pipeline.tag_blacklist,
            has_extension=item.kind == ItemKind.FILE,
        )
        ctx_logger.info(f"分类结果: {result.category} / {result.display_title}")

        # 第三步：生成目标路径并传输
        template = generate_destination_template(result, pipeline.movies_root, pipeline.shows_root)
        ctx_logger.info(f"目标路径模板: {template}")
        report = await asyncio.to_thread(pipeline.engine.transfer, item.path, template, result.category)

    except JellyDropError as e:
        outcome = await _quarantine_item(item, e.message, pipeline)
        await pipeline.notify_outcome(outcome)
        return outcome
    except OSError as e:
        error = TransferError(f"transfer failed: {e}")
        outcome = await _quarantine_item(item, error.message, pipeline)
        await pipeline.notify_outcome(outcome)
        return outcome

    # 第四步：清理源目录剩余内容
    if pipeline.delete_leftovers and item.kind == ItemKind.DIRECTORY:
        await asyncio.to_thread(pipeline.engine.remove_source_leftovers, item.path)

    if report.failed_associated:
        ctx_logger.warning(f"{len(report.failed_associated)} 个附属文件未能移动")
    ctx_logger.success(f"项目处理完成: {report.destination}")

    pipeline.schedule_library_refresh(result.category)
    outcome = ProcessOutcome(OutcomeStatus.SUCCESS, item.path, destination=report.destination)
    await pipeline.notify_outcome(outcome)
    return outcome
