"""稳定性检查模块

轮询项目的总大小和修改时间，连续 N 次读数相同才认为写入已经结束。
目录遍历在工作线程中执行，两次读数之间协作式休眠。
"""

from __future__ import annotations

import asyncio
import os
from enum import StrEnum
from pathlib import Path
from typing import Awaitable, Callable, NamedTuple, Optional

from loguru import logger

from ...core.models import StabilityState


class StabilityStatus(StrEnum):
    CHECKING = "checking"
    STABLE = "stable"
    UNSTABLE = "unstable"
    VANISHED = "vanished"


class StabilityResult(NamedTuple):
    """稳定性检查结果"""
    status: StabilityStatus
    state: Optional[StabilityState] = None

    @property
    def stable(self) -> bool:
        return self.status == StabilityStatus.STABLE


def read_signature(path: Path) -> Optional[tuple[int, float]]:
    """读取项目当前的 (总大小, 修改时间)

    目录的大小为其下所有文件大小之和，修改时间取目录自身的 mtime。

    Returns:
        签名元组；路径既不是文件也不是目录时返回 None

    Raises:
        FileNotFoundError: 路径已不存在
        OSError: stat 失败
    """
    st = path.stat()
    if path.is_file():
        return st.st_size, st.st_mtime
    if not path.is_dir():
        return None

    total_size = 0
    for root, _dirs, files in os.walk(path):
        for name in files:
            try:
                total_size += os.stat(os.path.join(root, name)).st_size
            except FileNotFoundError:
                continue
    return total_size, st.st_mtime


class StabilityMonitor:
    """项目稳定性监视器

    Args:
        max_checks: 需要的连续相同读数次数
        interval: 两次读数之间的等待时间（秒）
        sleep: 异步休眠函数，测试时可替换
    """

    def __init__(
        self,
        max_checks: int = 3,
        interval: float = 10.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.max_checks = max_checks
        self.interval = interval
        self._sleep = sleep

    async def check(self, path: Path) -> StabilityResult:
        """检查项目是否稳定

        Args:
            path: 文件或目录路径

        Returns:
            StabilityResult: STABLE / UNSTABLE / VANISHED
        """
        ctx_logger = logger.bind(item=path.name)
        ctx_logger.debug(f"稳定性检查开始: {self.max_checks} 次读数, 间隔 {self.interval} 秒")

        state: Optional[StabilityState] = None
        for i in range(self.max_checks):
            try:
                signature = await asyncio.to_thread(read_signature, path)
            except FileNotFoundError:
                ctx_logger.warning(f"稳定性检查期间项目消失: {path}")
                return StabilityResult(StabilityStatus.VANISHED, state)
            except OSError as e:
                ctx_logger.warning(f"稳定性检查 stat 失败: {path}, 错误: {e}")
                return StabilityResult(StabilityStatus.UNSTABLE, state)

            if signature is None:
                ctx_logger.warning(f"路径既不是文件也不是目录: {path}")
                return StabilityResult(StabilityStatus.UNSTABLE, state)

            size_bytes, mod_time = signature
            if state is not None and (size_bytes, mod_time) != (state.size_bytes, state.mod_time):
                ctx_logger.debug(
                    f"第 {i + 1} 次读数发生变化: 大小 {state.size_bytes} -> {size_bytes}，计数归零"
                )
                count = 0
            else:
                count = (state.consecutive_stable_count if state else 0) + 1
            state = StabilityState(size_bytes, mod_time, count)

            if i < self.max_checks - 1:
                await self._sleep(self.interval)

        if state is not None and state.consecutive_stable_count >= self.max_checks:
            ctx_logger.debug(f"项目已稳定: 大小 {state.size_bytes} 字节")
            return StabilityResult(StabilityStatus.STABLE, state)

        ctx_logger.info(f"项目在 {self.max_checks} 次读数内未稳定")
        return StabilityResult(StabilityStatus.UNSTABLE, state)
