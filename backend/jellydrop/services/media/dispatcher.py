"""调度器模块

固定数量的工作者协程从共享队列中取出项目并执行处理流水线，
同时处理的项目数不超过 MAX_CONCURRENT_PROCESSORS。
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Awaitable, Callable

from loguru import logger

from ...core.models import MediaItem
from .processor import MediaPipeline, process_media_item
from .types import OutcomeStatus, ProcessOutcome

ProcessFunc = Callable[[MediaItem, MediaPipeline], Awaitable[ProcessOutcome]]


class Dispatcher:
    """有界工作者池

    Args:
        pipeline: 共享的处理组件
        max_workers: 工作者数量，即同时处理的最大项目数
        process: 单个项目的处理函数
    """

    def __init__(
        self,
        pipeline: MediaPipeline,
        max_workers: int = 2,
        process: ProcessFunc = process_media_item,
    ):
        if max_workers < 1:
            raise ValueError("max_workers 必须至少为 1")
        self.pipeline = pipeline
        self.max_workers = max_workers
        self._process = process
        self._queue: asyncio.Queue[tuple[MediaItem, asyncio.Future]] = asyncio.Queue()
        self._in_flight: dict[Path, asyncio.Future] = {}
        self._workers: list[asyncio.Task] = []
        self._running = 0

    # —— 生命周期 ——

    async def start(self) -> None:
        if self._workers:
            return
        for i in range(self.max_workers):
            worker_task = asyncio.create_task(self._worker_loop(i + 1))
            worker_task.set_name(f"worker-{i + 1}")
            self._workers.append(worker_task)
        logger.info(f"调度器启动，工作者数量: {self.max_workers}")

    async def stop(self) -> None:
        """取消所有工作者并等待它们退出，未处理的项目被取消"""
        logger.info("正在关闭调度器...")
        for task in self._workers:
            task.cancel()
        if self._workers:
            await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers.clear()

        while not self._queue.empty():
            _item, future = self._queue.get_nowait()
            future.cancel()
            self._queue.task_done()
        self._in_flight.clear()

        await self.pipeline.wait_for_background()
        logger.info("调度器已关闭")

    async def __aenter__(self) -> "Dispatcher":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    # —— 提交 ——

    def is_active(self, path: Path) -> bool:
        """项目是否已在队列中或正在处理"""
        return path in self._in_flight

    @property
    def in_flight(self) -> list[Path]:
        return list(self._in_flight)

    @property
    def running(self) -> int:
        """正在执行流水线的项目数"""
        return self._running

    @property
    def queued(self) -> int:
        return self._queue.qsize()

    def enqueue(self, item: MediaItem) -> asyncio.Future:
        """把项目放入队列，立即返回代表处理结果的 Future

        同一路径已在处理中时返回已有的 Future。
        """
        existing = self._in_flight.get(item.path)
        if existing is not None:
            logger.debug(f"项目已在处理中，忽略重复提交: {item.path}")
            return existing

        future = asyncio.get_running_loop().create_future()
        self._in_flight[item.path] = future
        self._queue.put_nowait((item, future))
        logger.debug(f"项目已加入队列: {item.path} (队列长度: {self._queue.qsize()})")
        return future

    async def submit(self, item: MediaItem) -> ProcessOutcome:
        """提交项目并等待处理结果"""
        return await self.enqueue(item)

    # —— 工作者 ——

    async def _worker_loop(self, worker_id: int) -> None:
        """工作者协程循环

        从队列中获取项目并处理，单个项目的异常不会影响其他项目。
        """
        worker_logger = logger.bind(worker_id=worker_id)
        worker_logger.info(f"Worker-{worker_id} 启动")

        while True:
            try:
                item, future = await self._queue.get()
            except asyncio.CancelledError:
                worker_logger.info(f"Worker-{worker_id} 被取消")
                break

            worker_logger.info(f"Worker-{worker_id} 获取到任务: {item.name}")
            self._running += 1
            try:
                outcome = await self._process(item, self.pipeline)
            except asyncio.CancelledError:
                worker_logger.info(f"Worker-{worker_id} 被取消，中断处理: {item.name}")
                future.cancel()
                raise
            except Exception as e:
                worker_logger.error(f"Worker-{worker_id} 处理 {item.name} 时发生异常: {e}")
                outcome = ProcessOutcome(OutcomeStatus.FAILED, item.path, reason=f"unexpected error: {e}")
            finally:
                self._running -= 1
                self._in_flight.pop(item.path, None)
                self._queue.task_done()

            if not future.done():
                future.set_result(outcome)
            worker_logger.info(f"Worker-{worker_id} 完成 {item.name}: {outcome.status}")
