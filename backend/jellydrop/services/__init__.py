"""服务层包

按领域组织的服务层模块：
- media: 媒体项目处理、调度和扫描服务
- notifications: 处理结果通知与媒体库刷新
"""

from .media import (
    Dispatcher,
    MediaPipeline,
    ProcessOutcome,
    process_media_item,
    scan_drop_folder_once,
    background_scanner_task,
)
from .notifications import OutcomeListener, JellyfinLibraryScanner

__all__ = [
    "Dispatcher",
    "MediaPipeline",
    "ProcessOutcome",
    "process_media_item",
    "scan_drop_folder_once",
    "background_scanner_task",
    "OutcomeListener",
    "JellyfinLibraryScanner",
]
