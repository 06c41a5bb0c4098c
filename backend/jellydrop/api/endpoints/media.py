"""
媒体项目API路由模块

提供项目提交和调度器状态查询的REST API端点。
"""

from pathlib import Path

from fastapi import APIRouter, Depends, HTTPException
from loguru import logger

from ..deps import get_dispatcher, get_settings
from ...config import Settings
from ...core.models import MediaItem
from ...core.schemas import StatusResponse, SubmitItemRequest, SubmitItemResponse
from ...services.media import Dispatcher


media_router = APIRouter(prefix="/api", tags=["media"])


@media_router.post("/items", response_model=SubmitItemResponse, status_code=202)
async def submit_item(
    request_body: SubmitItemRequest,
    dispatcher: Dispatcher = Depends(get_dispatcher),
    settings: Settings = Depends(get_settings),
):
    """
    把投放目录中的一个文件或目录加入处理队列。

    接口立即返回，处理结果写入历史日志；失败的项目会出现在隔离区。

    Args:
        request_body: 项目路径和可选的分类提示（Movies/Shows，其他值返回 422）
        dispatcher: 调度器依赖
        settings: 配置依赖

    Returns:
        SubmitItemResponse: 已入队的项目信息

    Raises:
        HTTPException: 404 路径不存在；403 路径不是投放目录中的顶层条目
    """
    path = Path(request_body.path).expanduser()
    if not path.exists():
        raise HTTPException(
            status_code=404,
            detail=f"路径不存在: {request_body.path}"
        )

    resolved = path.resolve()
    if resolved.parent != settings.DROP_FOLDER:
        logger.warning(f"拒绝投放目录之外的项目: {resolved}")
        raise HTTPException(
            status_code=403,
            detail=f"只能提交投放目录 {settings.DROP_FOLDER} 中的项目: {request_body.path}"
        )

    item = MediaItem.from_path(resolved, request_body.category_hint)
    dispatcher.enqueue(item)
    logger.info(f"项目已通过 API 加入队列: {item.path}")

    return {
        "message": "项目已加入处理队列",
        "path": str(item.path),
        "kind": item.kind,
        "category_hint": item.category_hint,
    }


@media_router.get("/status", response_model=StatusResponse)
def get_status(
    settings: Settings = Depends(get_settings),
    dispatcher: Dispatcher = Depends(get_dispatcher),
):
    """
    获取调度器当前状态：工作者数量、正在处理和排队中的项目。
    """
    return {
        "drop_folder": str(settings.DROP_FOLDER),
        "max_workers": dispatcher.max_workers,
        "running": dispatcher.running,
        "queued": dispatcher.queued,
        "in_flight": [str(p) for p in dispatcher.in_flight],
    }
