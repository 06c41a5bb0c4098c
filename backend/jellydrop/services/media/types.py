"""媒体处理相关的数据结构和类型定义"""

from enum import StrEnum
from pathlib import Path
from typing import NamedTuple, Optional


class OutcomeStatus(StrEnum):
    """单个项目的最终处理状态"""
    SUCCESS = "success"
    QUARANTINED = "quarantined"
    FAILED = "failed"


# 与 CLI 退出码一一对应
EXIT_CODES = {
    OutcomeStatus.SUCCESS: 0,
    OutcomeStatus.FAILED: 1,
    OutcomeStatus.QUARANTINED: 2,
}


class ProcessOutcome(NamedTuple):
    """处理结果"""
    status: OutcomeStatus
    item_path: Path
    destination: Optional[Path] = None
    reason: str = ""
    # 尚未稳定而延后，扫描器下一次扫描时重新提交
    deferred: bool = False

    @property
    def success(self) -> bool:
        return self.status == OutcomeStatus.SUCCESS

    @property
    def exit_code(self) -> int:
        return EXIT_CODES[self.status]
