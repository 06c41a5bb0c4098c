"""媒体文件路径生成模块

负责根据分类结果生成标准的目标路径模板（不含扩展名），
扩展名在传输时取自实际找到的主媒体文件。
"""

from pathlib import Path

from ...core.models import ClassificationResult, MediaCategory


def generate_movie_template(result: ClassificationResult, movies_root: Path) -> Path:
    """电影: <movies_root>/<Title (Year)>/<Title (Year)>"""
    folder_name = result.display_title
    return movies_root / folder_name / folder_name


def generate_show_template(result: ClassificationResult, shows_root: Path) -> Path:
    """剧集: <shows_root>/<Title (Year)>/Season NN/<Title> SNNEMM/<Title> - SNNEMM

    剧集目录名带年份，单集目录和文件名只用标题。
    """
    show_folder = result.display_title
    season_folder = f"Season {result.season_label}"
    episode_folder = f"{result.title} {result.episode_code}"
    episode_radix = f"{result.title} - {result.episode_code}"
    return shows_root / show_folder / season_folder / episode_folder / episode_radix


def generate_destination_template(
    result: ClassificationResult,
    movies_root: Path,
    shows_root: Path,
) -> Path:
    """根据分类结果生成目标路径模板

    Args:
        result: 分类结果
        movies_root: 电影库根目录
        shows_root: 剧集库根目录

    Returns:
        Path: 不含扩展名的目标路径
    """
    if result.category == MediaCategory.SHOWS:
        return generate_show_template(result, shows_root)
    return generate_movie_template(result, movies_root)
