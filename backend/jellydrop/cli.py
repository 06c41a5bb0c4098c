"""
JellyDrop 命令行入口

子命令：
- process: 处理单个文件或目录（供下载器完成回调使用）
- watch: 持续监视投放目录
- serve: 启动 HTTP 服务（包含监视）
- classify: 只做分类，打印结果和目标路径模板

退出码：
- 0: 成功
- 1: 错误（参数、配置或隔离失败）
- 2: 项目已被隔离
"""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Optional, Sequence

from loguru import logger

from .config import Settings, load_settings
from .core.classifier import classify, compile_tag_blacklist
from .core.errors import ClassificationError, ConfigurationError
from .core.log import setup_logging
from .core.models import MediaCategory, MediaItem
from .services.media import Dispatcher, MediaPipeline, background_scanner_task
from .services.media.path_generator import generate_destination_template

EXIT_SUCCESS = 0
EXIT_ERROR = 1

# 下载器传入的项目类型
MOVIE_ITEM_TYPES = frozenset({"movie_file", "movie_folder", "Movies"})
SHOW_ITEM_TYPES = frozenset({"show_file", "show_folder", "Shows"})
AUTO_ITEM_TYPES = frozenset({"media_folder", "torrent", "generic_file", "generic_folder"})
ITEM_TYPES = MOVIE_ITEM_TYPES | SHOW_ITEM_TYPES | AUTO_ITEM_TYPES


def resolve_category_hint(item_type: str, category_hint: Optional[str]) -> Optional[MediaCategory]:
    """根据项目类型和可选提示得出分类提示

    Raises:
        ValueError: 未知的项目类型
    """
    if item_type in MOVIE_ITEM_TYPES:
        return MediaCategory.MOVIES
    if item_type in SHOW_ITEM_TYPES:
        return MediaCategory.SHOWS
    if item_type in AUTO_ITEM_TYPES:
        if category_hint in (MediaCategory.MOVIES, MediaCategory.SHOWS):
            return MediaCategory(category_hint)
        return None
    raise ValueError(f"未知的项目类型: {item_type}")


def _load_settings_or_exit() -> Optional[Settings]:
    try:
        settings = load_settings()
    except ConfigurationError as e:
        print(f"ERROR: {e.message}", file=sys.stderr)
        return None
    setup_logging(settings.LOG_LEVEL.value, settings.LOG_FILE, settings.LOG_RETENTION_DAYS)
    return settings


async def _process_one(settings: Settings, item: MediaItem) -> int:
    pipeline = MediaPipeline.from_settings(settings)
    async with Dispatcher(pipeline, settings.MAX_CONCURRENT_PROCESSORS) as dispatcher:
        outcome = await dispatcher.submit(item)
    logger.info(f"处理结果: {outcome.status} {outcome.reason}".rstrip())
    return outcome.exit_code


def cmd_process(args: argparse.Namespace) -> int:
    try:
        hint = resolve_category_hint(args.item_type, args.category_hint)
    except ValueError as e:
        print(f"ERROR: {e}. 可用类型: {', '.join(sorted(ITEM_TYPES))}", file=sys.stderr)
        return EXIT_ERROR

    item_path = Path(args.item_path).expanduser()
    if not item_path.exists():
        print(f"ERROR: 路径不存在: {item_path}", file=sys.stderr)
        return EXIT_ERROR

    settings = _load_settings_or_exit()
    if settings is None:
        return EXIT_ERROR

    item = MediaItem.from_path(item_path.resolve(), hint)
    return asyncio.run(_process_one(settings, item))


async def _watch(settings: Settings) -> None:
    pipeline = MediaPipeline.from_settings(settings)
    async with Dispatcher(pipeline, settings.MAX_CONCURRENT_PROCESSORS) as dispatcher:
        await background_scanner_task(settings, dispatcher)


def cmd_watch(args: argparse.Namespace) -> int:
    settings = _load_settings_or_exit()
    if settings is None:
        return EXIT_ERROR
    try:
        asyncio.run(_watch(settings))
    except KeyboardInterrupt:
        logger.info("收到中断信号，停止监视")
    return EXIT_SUCCESS


def cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    from .main import create_app

    settings = _load_settings_or_exit()
    if settings is None:
        return EXIT_ERROR
    uvicorn.run(
        create_app(settings),
        host=args.host or settings.API_HOST,
        port=args.port or settings.API_PORT,
        log_level="info",
    )
    return EXIT_SUCCESS


def cmd_classify(args: argparse.Namespace) -> int:
    setup_logging("WARNING")
    try:
        tag_blacklist = compile_tag_blacklist(args.tag_blacklist) if args.tag_blacklist else None
        result = classify(args.name, args.hint, tag_blacklist, has_extension=not args.directory)
    except (ClassificationError, ConfigurationError) as e:
        print(f"ERROR: {e.message}", file=sys.stderr)
        return EXIT_ERROR

    template = generate_destination_template(result, Path("Movies"), Path("Shows"))
    print(f"Category: {result.category}")
    print(f"Title:    {result.title}")
    print(f"Year:     {result.year if result.year else '-'}")
    if result.category == MediaCategory.SHOWS:
        print(f"Episode:  {result.episode_code}")
    print(f"Template: {template}")
    return EXIT_SUCCESS


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="jellydrop",
        description="把下载完成的电影和剧集整理进 Jellyfin 媒体库",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    parser_process = subparsers.add_parser("process", help="处理单个文件或目录")
    parser_process.add_argument("item_type", help=f"项目类型: {', '.join(sorted(ITEM_TYPES))}")
    parser_process.add_argument("item_path", help="文件或目录路径")
    parser_process.add_argument("category_hint", nargs="?", default=None, help="分类提示: Movies 或 Shows")
    parser_process.set_defaults(func=cmd_process)

    parser_watch = subparsers.add_parser("watch", help="持续监视投放目录")
    parser_watch.set_defaults(func=cmd_watch)

    parser_serve = subparsers.add_parser("serve", help="启动 HTTP 服务并监视投放目录")
    parser_serve.add_argument("--host", default=None, help="监听地址，默认取 API_HOST")
    parser_serve.add_argument("--port", type=int, default=None, help="监听端口，默认取 API_PORT")
    parser_serve.set_defaults(func=cmd_serve)

    parser_classify = subparsers.add_parser("classify", help="只分类，不移动任何文件")
    parser_classify.add_argument("name", help="文件名或目录名")
    parser_classify.add_argument("--hint", choices=[c.value for c in MediaCategory], default=None)
    parser_classify.add_argument("--directory", action="store_true", help="名称是目录名（不含扩展名）")
    parser_classify.add_argument("--tag-blacklist", default=None, help="覆盖默认的标签黑名单正则")
    parser_classify.set_defaults(func=cmd_classify)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
