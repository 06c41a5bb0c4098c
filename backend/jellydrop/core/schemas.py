"""
Pydantic模型（Schemas）模块

定义用于API请求/响应数据校验、序列化和文档生成的Pydantic模型。
与内部数据结构（models.py）分离，以实现更灵活的API接口定义。
"""

from pydantic import BaseModel, Field
from typing import List, Optional
import datetime

from .models import MediaCategory


# 历史记录条目
class HistoryItem(BaseModel):
    timestamp: datetime.datetime
    text: str


class HistoryResponse(BaseModel):
    total: int
    items: List[HistoryItem]


# 隔离区条目
class QuarantineItem(BaseModel):
    name: str
    path: str
    is_dir: bool
    size_bytes: Optional[int] = None
    modified_at: datetime.datetime


class QuarantineResponse(BaseModel):
    total: int
    items: List[QuarantineItem]


# 调度器状态
class StatusResponse(BaseModel):
    drop_folder: str
    max_workers: int
    running: int
    queued: int
    in_flight: List[str]


# 提交项目请求
class SubmitItemRequest(BaseModel):
    path: str = Field(..., description="待处理的文件或目录路径")
    category_hint: Optional[MediaCategory] = Field(None, description="分类提示: Movies 或 Shows")


class SubmitItemResponse(BaseModel):
    message: str
    path: str
    kind: str
    category_hint: Optional[MediaCategory] = None
