"""Core module exports

JellyDrop 项目的核心功能模块，提供名称分类、文件移动和审计日志等基础能力。

主要模块：
- classifier: 根据名称判断电影/剧集并提取标题、年份和季集
- mover: 安全的文件移动（跨文件系统时校验复制）
- history: 带文件锁的传输历史日志
- models: 内部数据结构
- errors: 流水线各阶段的异常类型
"""
