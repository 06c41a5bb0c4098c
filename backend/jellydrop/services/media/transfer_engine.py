"""媒体传输引擎模块

负责把一个已分类的项目移动到媒体库：
定位主媒体文件 -> 检查目标与磁盘空间 -> 移动主文件 -> 移动并重命名附属文件 -> 清理源目录。

所有方法都是阻塞的文件系统操作，由处理器通过 asyncio.to_thread 调用。
"""

from __future__ import annotations

import os
import re
import shutil
from pathlib import Path
from typing import Callable, Iterable, Optional

from loguru import logger

from ...config import Settings
from ...core.errors import (
    AssociatedFileTransferError,
    ChecksumMismatchError,
    DestinationConflictError,
    DestinationError,
    InsufficientDiskSpaceError,
    NoMediaFilesError,
    NotMediaFileError,
    TransferError,
    TransferTimeoutError,
)
from ...core.history import HistoryLog
from ...core.models import MediaCategory, TransferPlan, TransferReport
from ...core.mover import MoveResult, move_file

# 例如 movie.en.srt / movie.chi.ass
LANGUAGE_TAG_RE = re.compile(r"\.([a-zA-Z]{2,3})\.[^.]+$")


def required_kilobytes(size_bytes: int) -> int:
    """按 KB 向上取整，最少 1 KB"""
    return max(1, (size_bytes + 1023) // 1024)


def has_extension(path: Path, extensions: Iterable[str]) -> bool:
    return path.suffix.lower() in extensions


class TransferEngine:
    """媒体传输引擎

    Args:
        main_extensions: 主媒体文件扩展名集合（小写，带点号）
        associated_extensions: 附属文件扩展名集合
        history: 历史日志
        watched_root: 投放目录，清理时永远不会删除它
        transfer_timeout: 跨文件系统复制的超时时间（秒）
        mover: 执行单个文件移动的函数
    """

    def __init__(
        self,
        main_extensions: Iterable[str],
        associated_extensions: Iterable[str],
        history: HistoryLog,
        *,
        watched_root: Path,
        transfer_timeout: float = 600.0,
        mover: Callable[..., MoveResult] = move_file,
    ):
        self.main_extensions = frozenset(ext.lower() for ext in main_extensions)
        self.associated_extensions = frozenset(ext.lower() for ext in associated_extensions)
        self.history = history
        self.watched_root = watched_root
        self.transfer_timeout = transfer_timeout
        self._mover = mover

    @classmethod
    def from_settings(cls, settings: Settings, history: HistoryLog) -> "TransferEngine":
        return cls(
            settings.main_media_extensions,
            settings.associated_file_extensions,
            history,
            watched_root=settings.DROP_FOLDER,
            transfer_timeout=settings.TRANSFER_TIMEOUT,
        )

    # —— 定位与计划 ——

    def _media_files_in(self, directory: Path) -> list[Path]:
        return sorted(
            p for p in directory.iterdir()
            if p.is_file() and has_extension(p, self.main_extensions)
        )

    def locate_main_file(self, source: Path) -> tuple[Path, int]:
        """找到项目中的主媒体文件

        单个文件必须带主媒体扩展名。目录先在顶层查找，找不到再向下一层查找，
        取最大的文件；大小相同时保留排序靠前的那个。

        Returns:
            (主文件路径, 字节数)

        Raises:
            NotMediaFileError: 单个文件不是主媒体类型
            NoMediaFilesError: 目录中找不到主媒体文件
        """
        if source.is_file():
            if not has_extension(source, self.main_extensions):
                raise NotMediaFileError(f"not a main media file: {source.name} (ext: {source.suffix or 'none'})")
            return source, source.stat().st_size

        if not source.is_dir():
            raise TransferError(f"source is neither a file nor a directory: {source}")

        candidates = self._media_files_in(source)
        if not candidates:
            logger.debug(f"目录顶层没有主媒体文件，继续查找子目录: {source}")
            for child in sorted(p for p in source.iterdir() if p.is_dir()):
                candidates.extend(self._media_files_in(child))
        if not candidates:
            raise NoMediaFilesError(f"no media files found in {source.name}")

        best_path, best_size = candidates[0], candidates[0].stat().st_size
        for candidate in candidates[1:]:
            size = candidate.stat().st_size
            if size > best_size:
                best_path, best_size = candidate, size
        logger.info(f"主媒体文件: {best_path} ({best_size} 字节)")
        return best_path, best_size

    def find_associated_files(self, item_path: Path, main_source_path: Path) -> tuple[Path, ...]:
        """在主文件所在目录（不递归）查找附属文件

        项目本身是单个文件时，只匹配与主文件同名前缀的附属文件，避免带走投放目录中其他项目的字幕。
        """
        directory = main_source_path.parent
        stem = main_source_path.stem
        found = []
        for path in sorted(directory.iterdir()):
            if not path.is_file() or not has_extension(path, self.associated_extensions):
                continue
            if item_path.is_file() and not path.name.startswith(f"{stem}."):
                continue
            found.append(path)
        return tuple(found)

    def build_plan(self, source: Path, destination_template: Path) -> TransferPlan:
        main_source_path, size = self.locate_main_file(source)
        return TransferPlan(
            main_source_path=main_source_path,
            main_size_bytes=size,
            destination_template=destination_template,
            associated_source_paths=self.find_associated_files(source, main_source_path),
        )

    # —— 目标检查 ——

    def ensure_destination(self, destination: Path) -> None:
        """创建目标父目录并确认可写、目标不存在

        Raises:
            DestinationError: 无法创建目录或目录不可写
            DestinationConflictError: 目标文件已存在
        """
        parent = destination.parent
        try:
            parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise DestinationError(f"cannot create destination directory {parent}: {e}") from e
        if not os.access(parent, os.W_OK):
            raise DestinationError(f"destination directory is not writable: {parent}")
        if destination.exists():
            raise DestinationConflictError(f"destination already exists: {destination}")

    def check_disk_space(self, directory: Path, size_bytes: int) -> None:
        """确认目标所在文件系统有足够空间

        Raises:
            InsufficientDiskSpaceError: 可用空间小于所需 KB 数
        """
        required_kb = required_kilobytes(size_bytes)
        try:
            free_kb = shutil.disk_usage(directory).free // 1024
        except OSError as e:
            raise DestinationError(f"cannot read free space of {directory}: {e}") from e
        if free_kb < required_kb:
            raise InsufficientDiskSpaceError(
                f"insufficient disk space: required {required_kb}KB, available {free_kb}KB in {directory}"
            )
        logger.debug(f"磁盘空间充足: 需要 {required_kb}KB, 可用 {free_kb}KB")

    # —— 移动 ——

    def _move(self, source: Path, destination: Path) -> MoveResult:
        result = self._mover(source, destination, timeout=self.transfer_timeout)
        if result.ok:
            return result
        if result == MoveResult.MOVE_FAILED_CONFLICT:
            raise DestinationConflictError(f"destination already exists: {destination}")
        if result == MoveResult.MOVE_FAILED_TIMEOUT:
            raise TransferTimeoutError(f"transfer timed out after {self.transfer_timeout}s: {source.name}")
        if result == MoveResult.MOVE_FAILED_CHECKSUM:
            raise ChecksumMismatchError(f"checksum mismatch after copy: {source.name}")
        if result == MoveResult.MOVE_FAILED_NO_SOURCE:
            raise TransferError(f"source file vanished: {source}")
        raise TransferError(f"transfer failed ({result}): {source.name}")

    def _move_associated(self, source: Path, main_destination: Path, category: MediaCategory) -> Path:
        """移动一个附属文件，保留语言标签并改为主文件的新名称"""
        match = LANGUAGE_TAG_RE.search(source.name)
        lang_tag = f".{match.group(1)}" if match else ""
        destination = main_destination.with_name(f"{main_destination.stem}{lang_tag}{source.suffix}")
        try:
            self._move(source, destination)
        except TransferError as e:
            raise AssociatedFileTransferError(f"{source.name}: {e.message}") from e
        self.history.append(f"{source} -> {destination} ({category} - Assoc.)")
        return destination

    def transfer(self, source: Path, destination_template: Path, category: MediaCategory) -> TransferReport:
        """执行一次完整的传输

        Args:
            source: 项目路径（文件或目录）
            destination_template: 不含扩展名的目标路径
            category: 媒体分类，写入历史记录

        Returns:
            TransferReport: 主文件和附属文件的最终位置

        Raises:
            TransferError: 主文件传输失败（附属文件失败只记录日志）
        """
        plan = self.build_plan(source, destination_template)
        destination = Path(f"{plan.destination_template}{plan.main_source_path.suffix}")

        self.ensure_destination(destination)
        self.check_disk_space(destination.parent, plan.main_size_bytes)

        logger.info(f"移动主文件: {plan.main_source_path.name} -> {destination}")
        self._move(plan.main_source_path, destination)
        self.history.append(f"{plan.main_source_path} -> {destination} ({category})")

        moved, failed = [], []
        for assoc_path in plan.associated_source_paths:
            try:
                moved.append(self._move_associated(assoc_path, destination, category))
            except AssociatedFileTransferError as e:
                logger.warning(f"附属文件传输失败，保留在原处: {e.message}")
                failed.append(assoc_path)

        if source.is_dir():
            self.cleanup_empty_directories(source)

        return TransferReport(
            destination=destination,
            associated_destinations=tuple(moved),
            failed_associated=tuple(failed),
        )

    # —— 清理 ——

    def is_watched_root(self, path: Path) -> bool:
        try:
            return path.resolve() == self.watched_root.resolve()
        except OSError:
            return False

    def is_drop_item(self, path: Path) -> bool:
        """路径是否是投放目录中的顶层条目"""
        try:
            return path.resolve().parent == self.watched_root.resolve()
        except OSError:
            return False

    def cleanup_empty_directories(self, item_path: Path) -> None:
        """自底向上删除空的子目录，最后删除空的项目目录本身（投放目录除外）"""
        for root, dirs, _files in os.walk(item_path, topdown=False):
            for name in dirs:
                directory = Path(root) / name
                try:
                    directory.rmdir()
                    logger.debug(f"已删除空目录: {directory}")
                except OSError:
                    continue

        if self.is_watched_root(item_path) or not item_path.is_dir():
            return
        if not any(item_path.iterdir()):
            try:
                item_path.rmdir()
                logger.info(f"已删除空的源目录: {item_path}")
            except OSError as e:
                logger.warning(f"无法删除源目录 {item_path}: {e}")

    def remove_source_leftovers(self, item_path: Path) -> Optional[Path]:
        """传输成功后删除源目录中剩余的内容（样片、未匹配文件等）

        Returns:
            被删除的目录；没有需要删除的内容时返回 None
        """
        if not item_path.is_dir():
            return None
        if self.is_watched_root(item_path):
            logger.warning(f"清理目标就是投放目录本身，跳过删除: {item_path}")
            return None
        if not self.is_drop_item(item_path):
            logger.warning(f"项目不在投放目录中，保留源目录: {item_path}")
            return None

        logger.info(f"删除源目录剩余内容: {item_path}")
        try:
            shutil.rmtree(item_path)
        except OSError as e:
            logger.warning(f"删除源目录失败，需要人工检查: {item_path}, 错误: {e}")
            return None
        self.history.append(f"DELETED (final cleanup): {item_path.name} from DROP_FOLDER")
        return item_path
