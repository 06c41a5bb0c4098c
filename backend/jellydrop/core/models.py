import datetime
from enum import StrEnum
from pathlib import Path
from typing import NamedTuple, Optional

from pydantic import BaseModel, ConfigDict, Field


def local_now() -> datetime.datetime:
    """获取当前本地时间，历史日志与隔离后缀均使用本地时间"""
    return datetime.datetime.now()


# 媒体分类只有两个取值，无法归类时直接失败
class MediaCategory(StrEnum):
    MOVIES = "Movies"
    SHOWS = "Shows"


class ItemKind(StrEnum):
    FILE = "file"
    DIRECTORY = "directory"


class MediaItem(BaseModel):
    """
    一个待处理的媒体项目（文件或目录），由发现方创建，只存在于一次流水线运行中。
    """
    model_config = ConfigDict(frozen=True)

    path: Path = Field(description="文件或目录的路径")
    kind: ItemKind = Field(description="项目类型: file 或 directory")
    category_hint: Optional[MediaCategory] = Field(default=None, description="外部给出的分类提示")
    # 扫描器提交的项目在未稳定时留在原处，下次扫描再检查
    defer_if_unstable: bool = Field(default=False, description="未稳定时是否跳过隔离")

    @classmethod
    def from_path(
        cls,
        path: Path,
        category_hint: Optional[MediaCategory] = None,
        *,
        defer_if_unstable: bool = False,
    ) -> "MediaItem":
        """根据文件系统实际类型构建项目"""
        kind = ItemKind.DIRECTORY if path.is_dir() else ItemKind.FILE
        return cls(
            path=path,
            kind=kind,
            category_hint=category_hint,
            defer_if_unstable=defer_if_unstable,
        )

    @property
    def name(self) -> str:
        return self.path.name


class ClassificationResult(BaseModel):
    """
    分类结果。电影只有标题和年份；剧集额外包含季和集。
    """
    model_config = ConfigDict(frozen=True)

    category: MediaCategory
    title: str = Field(description="清理后的显示标题，不含年份")
    year: Optional[int] = Field(default=None, ge=1920, le=2029, description="校验过的发行年份")
    season: Optional[int] = Field(default=None, ge=0, description="季号，仅剧集")
    episode: Optional[int] = Field(default=None, ge=0, description="集号，仅剧集")

    @property
    def display_title(self) -> str:
        """带年份的显示名称，例如 'A Minecraft Movie (2025)'"""
        if self.year:
            return f"{self.title} ({self.year})"
        return self.title

    @property
    def season_label(self) -> str:
        return f"{self.season:02d}" if self.season is not None else ""

    @property
    def episode_label(self) -> str:
        # 三位及以上的集号保持原样
        return f"{self.episode:02d}" if self.episode is not None else ""

    @property
    def episode_code(self) -> str:
        """S01E05 形式的季集编码"""
        return f"S{self.season_label}E{self.episode_label}"


class TransferPlan(NamedTuple):
    """一次传输的计划，每个项目只构建一次、只消费一次"""
    main_source_path: Path
    main_size_bytes: int
    destination_template: Path
    associated_source_paths: tuple[Path, ...]


class TransferReport(NamedTuple):
    """传输完成后的结果"""
    destination: Path
    associated_destinations: tuple[Path, ...]
    failed_associated: tuple[Path, ...]


class HistoryEntry(NamedTuple):
    """历史日志中的一行，写入后不再修改"""
    timestamp: datetime.datetime
    text: str

    def format(self) -> str:
        return f"{self.timestamp:%Y-%m-%d %H:%M:%S} - {self.text}"


class QuarantineRecord(NamedTuple):
    """隔离记录；源路径已不存在时 destination_path 为 None"""
    original_path: Path
    destination_path: Optional[Path]
    reason: str


class StabilityState(NamedTuple):
    """稳定性检查的中间状态，检查结束即丢弃"""
    size_bytes: int
    mod_time: float
    consecutive_stable_count: int
