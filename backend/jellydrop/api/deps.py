"""
FastAPI 依赖模块

从 app.state 中取出由 lifespan 创建的配置、调度器和处理组件。
"""

from fastapi import HTTPException, Request

from ..config import Settings
from ..core.history import HistoryLog
from ..services.media import Dispatcher, MediaPipeline


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_dispatcher(request: Request) -> Dispatcher:
    dispatcher = getattr(request.app.state, "dispatcher", None)
    if dispatcher is None:
        raise HTTPException(status_code=503, detail="调度器尚未启动")
    return dispatcher


def get_pipeline(request: Request) -> MediaPipeline:
    return request.app.state.pipeline


def get_history(request: Request) -> HistoryLog:
    return request.app.state.pipeline.history
