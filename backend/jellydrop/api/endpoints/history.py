"""
历史与隔离区API路由模块

只读接口：查询传输历史和隔离区内容。
"""

import datetime

from fastapi import APIRouter, Depends, Query

from ..deps import get_history, get_pipeline
from ...core.history import HistoryLog
from ...core.schemas import HistoryResponse, QuarantineResponse
from ...services.media import MediaPipeline


history_router = APIRouter(prefix="/api", tags=["history"])


@history_router.get("/history", response_model=HistoryResponse)
def get_history_entries(
    limit: int = Query(100, ge=1, le=1000, description="返回最近的记录数（最大1000）"),
    history: HistoryLog = Depends(get_history),
):
    """
    查询最近的传输历史，按时间从新到旧排列。
    """
    entries = history.read_entries(limit)
    entries.reverse()
    return {
        "total": len(entries),
        "items": [{"timestamp": e.timestamp, "text": e.text} for e in entries],
    }


@history_router.get("/quarantine", response_model=QuarantineResponse)
def get_quarantine_entries(pipeline: MediaPipeline = Depends(get_pipeline)):
    """
    列出隔离区中的所有条目。
    """
    items = []
    for path in pipeline.quarantine.list_entries():
        try:
            stat_info = path.stat()
        except OSError:
            continue
        items.append({
            "name": path.name,
            "path": str(path),
            "is_dir": path.is_dir(),
            "size_bytes": None if path.is_dir() else stat_info.st_size,
            "modified_at": datetime.datetime.fromtimestamp(stat_info.st_mtime),
        })
    return {"total": len(items), "items": items}
