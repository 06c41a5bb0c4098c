import sys
from pathlib import Path
from typing import Optional

from loguru import logger

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level}</level> | "
    "{extra} {message}"
)


def setup_logging(level: str = "INFO", log_file: Optional[Path] = None, retention_days: int = 7) -> None:
    """配置 loguru 输出

    移除默认处理器，添加终端输出；指定 log_file 时额外写入按天轮转的日志文件。

    Args:
        level: 日志级别
        log_file: 日志文件路径，None 表示只输出到终端
        retention_days: 日志文件保留天数
    """
    logger.remove()
    logger.add(sys.stderr, level=level, format=LOG_FORMAT, colorize=True)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file,
            level=level,
            format=LOG_FORMAT,
            rotation="00:00",
            retention=f"{retention_days} days",
            encoding="utf-8",
            enqueue=True,
        )
        logger.debug(f"日志文件: {log_file}")
