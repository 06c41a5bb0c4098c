"""JellyDrop API 聚合器包

此包负责聚合各 endpoints 子模块的路由，并向外暴露统一的 `router` 变量，
供 `main.py` 及测试用例 `from jellydrop.api import router` 使用。
"""

from fastapi import APIRouter

from .endpoints.media import media_router
from .endpoints.history import history_router

# 创建聚合路由器
router = APIRouter()
router.include_router(media_router)
router.include_router(history_router)

# OpenAPI 标签元数据，供 FastAPI 应用在生成文档时使用
tags_metadata = [
    {
        "name": "media",
        "description": "媒体项目相关接口：提交项目、查询调度器状态",
    },
    {
        "name": "history",
        "description": "审计相关接口：传输历史与隔离区内容",
    },
]

__all__ = ["router", "tags_metadata"]
