import asyncio
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from loguru import logger

from .api import router as api_router, tags_metadata
from .config import Settings, load_settings
from .services.media import Dispatcher, MediaPipeline, background_scanner_task


def create_app(
    settings: Optional[Settings] = None,
    *,
    pipeline: Optional[MediaPipeline] = None,
    enable_scanner: bool = True,
) -> FastAPI:
    """创建 FastAPI 应用

    Args:
        settings: 应用配置，None 时从环境变量加载
        pipeline: 处理组件，None 时根据配置创建
        enable_scanner: 是否启动投放目录后台扫描

    Returns:
        FastAPI: 应用实例，生命周期内运行调度器和扫描器
    """
    if settings is None:
        settings = load_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        logger.info("应用启动，开始初始化...")
        media_pipeline = pipeline or MediaPipeline.from_settings(settings)
        dispatcher = Dispatcher(media_pipeline, settings.MAX_CONCURRENT_PROCESSORS)
        await dispatcher.start()

        app.state.settings = settings
        app.state.pipeline = media_pipeline
        app.state.dispatcher = dispatcher
        logger.info("调度器已保存到app.state.dispatcher")

        background_tasks = []
        if enable_scanner:
            scanner_task = asyncio.create_task(background_scanner_task(settings, dispatcher))
            scanner_task.set_name("scanner")
            background_tasks.append(scanner_task)
            logger.info("启动 Scanner 任务")

        logger.info(
            f"所有后台任务启动完成 - Scanner: {len(background_tasks)}, "
            f"Workers: {settings.MAX_CONCURRENT_PROCESSORS}"
        )

        yield

        # Shutdown
        logger.info("正在关闭所有后台任务...")
        for task in background_tasks:
            task.cancel()
        await asyncio.gather(*background_tasks, return_exceptions=True)
        await dispatcher.stop()
        logger.info("所有后台任务已关闭")

    app = FastAPI(title="JellyDrop API", lifespan=lifespan, openapi_tags=tags_metadata)
    app.include_router(api_router)

    @app.get("/")
    def read_root():
        return {"message": "Welcome to JellyDrop API"}

    return app
