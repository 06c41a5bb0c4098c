"""媒体处理服务模块

按职责拆分为多个子模块：
- types: 处理结果类型
- stability: 稳定性检查
- path_generator: 目标路径生成
- transfer_engine: 主文件与附属文件传输
- quarantine: 隔离区管理
- processor: 单个项目的处理流水线
- dispatcher: 有界工作者池
- scanner: 投放目录扫描
"""

from .types import OutcomeStatus, ProcessOutcome
from .stability import StabilityMonitor, StabilityResult, StabilityStatus
from .path_generator import generate_destination_template
from .transfer_engine import TransferEngine
from .quarantine import QuarantineManager
from .processor import MediaPipeline, process_media_item
from .dispatcher import Dispatcher
from .scanner import scan_drop_folder_once, background_scanner_task

__all__ = [
    "OutcomeStatus",
    "ProcessOutcome",
    "StabilityMonitor",
    "StabilityResult",
    "StabilityStatus",
    "generate_destination_template",
    "TransferEngine",
    "QuarantineManager",
    "MediaPipeline",
    "process_media_item",
    "Dispatcher",
    "scan_drop_folder_once",
    "background_scanner_task",
]
