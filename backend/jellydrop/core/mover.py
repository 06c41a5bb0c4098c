"""文件移动器模块

提供安全的文件移动功能，包含完整的错误处理和状态返回。

同一文件系统内直接 os.rename；跨文件系统时（EXDEV）先分块复制到目标目录中的
隐藏暂存文件 ``.<name>.partial``，校验 SHA-256 后原子替换为最终文件名，
最后才删除源文件。暂存文件在任何失败路径上（包括任务取消）都会被清理。

Example:
    >>> from pathlib import Path
    >>> from jellydrop.core.mover import move_file, MoveResult
    >>>
    >>> result = move_file(Path("/drop/movie.mkv"), Path("/movies/Movie (2023)/Movie (2023).mkv"))
    >>> if result.ok:
    >>>     print("移动成功")
"""

from __future__ import annotations

import errno
import hashlib
import os
import time
from contextlib import contextmanager
from enum import StrEnum
from pathlib import Path
from typing import Iterator

from loguru import logger
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from .errors import TransferTimeoutError

CHUNK_SIZE = 4 * 1024 * 1024
STAGING_SUFFIX = ".partial"

retry_config = {
    'stop': stop_after_attempt(3),  # 最多尝试3次
    'wait': wait_exponential(multiplier=0.5, min=0.5, max=5),  # 指数退避策略
    'retry': retry_if_exception_type(OSError),
    'reraise': True,  # 重试失败后抛出原始异常
}


class MoveResult(StrEnum):
    """文件移动结果枚举"""

    MOVE_RENAMED = "renamed"
    """同一文件系统内重命名成功"""

    MOVE_COPIED = "copied"
    """跨文件系统复制并校验成功，源文件已删除"""

    MOVE_FAILED_NO_SOURCE = "no_source"
    """源文件不存在或不是常规文件"""

    MOVE_FAILED_CONFLICT = "conflict"
    """目标路径已存在文件"""

    MOVE_FAILED_TIMEOUT = "timeout"
    """跨文件系统复制超时"""

    MOVE_FAILED_CHECKSUM = "checksum_mismatch"
    """复制后的校验和与源文件不一致"""

    MOVE_FAILED_UNKNOWN = "unknown"
    """其他系统错误"""

    @property
    def ok(self) -> bool:
        return self in (MoveResult.MOVE_RENAMED, MoveResult.MOVE_COPIED)


def staging_path_for(destination_path: Path) -> Path:
    """返回目标文件对应的隐藏暂存文件路径"""
    return destination_path.with_name(f".{destination_path.name}{STAGING_SUFFIX}")


def move_file(
    source_path: Path,
    destination_path: Path,
    *,
    timeout: float = 600.0,
    chunk_size: int = CHUNK_SIZE,
) -> MoveResult:
    """安全地移动文件，从不覆盖已存在的目标

    Args:
        source_path: 源文件路径，必须是现有的常规文件
        destination_path: 目标文件路径，不能已存在；父目录必须已创建
        timeout: 跨文件系统复制的超时时间（秒）
        chunk_size: 复制时每块的字节数

    Returns:
        MoveResult: 操作结果枚举，所有错误都通过返回值表示
    """
    logger.debug(f"移动操作开始: {source_path} -> {destination_path}")

    if not source_path.is_file():
        logger.warning(f"源文件不存在或不是常规文件: {source_path}")
        return MoveResult.MOVE_FAILED_NO_SOURCE

    if destination_path.exists():
        logger.warning(f"目标路径已存在，拒绝覆盖: {destination_path}")
        return MoveResult.MOVE_FAILED_CONFLICT

    try:
        os.rename(source_path, destination_path)
        logger.success(f"移动成功: {source_path} -> {destination_path}")
        return MoveResult.MOVE_RENAMED
    except OSError as e:
        if e.errno != errno.EXDEV:
            logger.error(f"移动时发生未知错误: {e} (errno: {e.errno})")
            return MoveResult.MOVE_FAILED_UNKNOWN

    logger.info(f"源和目标在不同文件系统，改为校验复制: {source_path} -> {destination_path}")
    return _copy_across_devices(source_path, destination_path, timeout, chunk_size)


def _copy_across_devices(source_path: Path, destination_path: Path, timeout: float, chunk_size: int) -> MoveResult:
    staging_path = staging_path_for(destination_path)
    deadline = time.monotonic() + timeout

    try:
        with staging_file(staging_path):
            _copy_into_staging(source_path, staging_path, deadline, chunk_size)

            source_digest = file_sha256(source_path, chunk_size, deadline)
            staged_digest = file_sha256(staging_path, chunk_size, deadline)
            if source_digest != staged_digest:
                logger.error(f"校验和不一致: {source_path} ({source_digest}) != {staging_path} ({staged_digest})")
                return MoveResult.MOVE_FAILED_CHECKSUM

            if destination_path.exists():
                logger.warning(f"复制期间目标路径被占用，拒绝覆盖: {destination_path}")
                return MoveResult.MOVE_FAILED_CONFLICT
            os.replace(staging_path, destination_path)
    except TransferTimeoutError:
        logger.error(f"复制超过 {timeout} 秒未完成: {source_path}")
        return MoveResult.MOVE_FAILED_TIMEOUT
    except OSError as e:
        logger.error(f"跨文件系统复制失败: {e} (errno: {e.errno})")
        return MoveResult.MOVE_FAILED_UNKNOWN

    try:
        source_path.unlink()
    except OSError as e:
        # 目标已完整写入，源文件残留只影响清理
        logger.warning(f"复制完成但删除源文件失败: {source_path}, 错误: {e}")

    logger.success(f"校验复制成功: {source_path} -> {destination_path}")
    return MoveResult.MOVE_COPIED


@contextmanager
def staging_file(staging_path: Path) -> Iterator[Path]:
    """暂存文件的作用域：离开时若文件仍存在（未被重命名为最终文件）则删除"""
    try:
        yield staging_path
    finally:
        if staging_path.exists():
            try:
                staging_path.unlink()
                logger.debug(f"已清理暂存文件: {staging_path}")
            except OSError as e:
                logger.warning(f"清理暂存文件失败: {staging_path}, 错误: {e}")


@retry(**retry_config)
def _copy_into_staging(source_path: Path, staging_path: Path, deadline: float, chunk_size: int) -> None:
    """把源文件复制到暂存文件，重试时从暂存文件已有的长度继续"""
    source_size = source_path.stat().st_size
    offset = staging_path.stat().st_size if staging_path.exists() else 0
    if offset > source_size:
        offset = 0
    if offset:
        logger.info(f"从 {offset} 字节处继续复制: {source_path}")

    with open(source_path, "rb") as src, open(staging_path, "r+b" if offset else "wb") as dst:
        src.seek(offset)
        dst.seek(offset)
        dst.truncate()
        while True:
            if time.monotonic() > deadline:
                raise TransferTimeoutError()
            chunk = src.read(chunk_size)
            if not chunk:
                break
            dst.write(chunk)
        dst.flush()
        os.fsync(dst.fileno())


def file_sha256(path: Path, chunk_size: int = CHUNK_SIZE, deadline: float | None = None) -> str:
    """分块计算文件的 SHA-256

    Raises:
        TransferTimeoutError: 给定 deadline（time.monotonic 时间）且计算超时
    """
    digest = hashlib.sha256()
    with open(path, "rb") as fh:
        while True:
            if deadline is not None and time.monotonic() > deadline:
                raise TransferTimeoutError()
            chunk = fh.read(chunk_size)
            if not chunk:
                break
            digest.update(chunk)
    return digest.hexdigest()
