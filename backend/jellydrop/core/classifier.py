"""媒体名称分类模块

根据项目名称判断是电影还是剧集，并提取标题、年份和季/集信息。
分类完全基于名称中的模式，不查询任何外部元数据库。

每个阶段都是独立的纯函数，可以单独测试：

    sanitize_filename -> strip_tags -> extract_year -> extract_season_episode -> title_case

Example:
    >>> from jellydrop.core.classifier import classify
    >>> result = classify("Show.Name.S01E05.720p.mkv")
    >>> result.category, result.title, result.episode_code
    (<MediaCategory.SHOWS: 'Shows'>, 'Show Name', 'S01E05')
"""

from __future__ import annotations

import re
from typing import NamedTuple, Optional

from loguru import logger

from .errors import ClassificationError, ConfigurationError
from .models import ClassificationResult, MediaCategory

UNKNOWN_MOVIE = "Unknown Movie"
UNKNOWN_SHOW = "Unknown Show"

MIN_VALID_YEAR = 1920
MAX_VALID_YEAR = 2029

DEFAULT_TAG_BLACKLIST = (
    r"2160p|1080p|720p|480p|web[- ]?dl|webrip|bluray|brrip|hdrip|ddp5?\.1|aac|ac3"
    r"|x265|x264|hevc|h\.264|h\.265|remux|neonoir|sdrip|re-encoded"
)

# 剧集标记：SxxEyy、Season NN、Episode NN、Part N、Series/Show、Season Pack
SHOW_MARKERS_RE = re.compile(
    r"([Ss](\d{1,3})[._ ]?[EeXx](\d{1,4}))"
    r"|(season[._ ]?(\d{1,3}))"
    r"|(episode[._ ]?(\d{1,4}))"
    r"|\b(part|pt)[._ ]?([0-9ivx]+)\b"
    r"|\b(series|show)\b"
    r"|\b(season[._ ]pack)\b",
    re.IGNORECASE,
)

SEASON_EPISODE_RE = re.compile(r"[Ss](\d{1,3})[._ ]?[EeXx](\d{1,4})")
SCENE_NAME_RE = re.compile(r"^([A-Za-z0-9]+)\.([Ss]\d{2}[Ee]\d{2})")
WWW_PREFIX_RE = re.compile(r"^\s*www\.\S+\s*-*\s*", re.IGNORECASE)
RELEASE_GROUP_RE = re.compile(r"-[A-Za-z0-9]+$")
TRAILING_YEAR_RE = re.compile(r"^(.*)\s((?:19|20)\d{2})$")
SEASON_KEYWORD_AT_END_RE = re.compile(r"(s\d+|season[._ ]?\d+)$", re.IGNORECASE)
BARE_YEAR_RE = re.compile(r"(?<!\d)([12]\d{3})(?!\d)")
EXPLICIT_YEAR_RE = re.compile(r"^(.*?)\s*\(((?:19|20)\d{2})\)(.*)$")
EXTENSION_RE = re.compile(r"\.(?=[A-Za-z0-9]*[A-Za-z])[A-Za-z0-9]{2,4}$")

_DEFAULT_TAG_PATTERN = re.compile(DEFAULT_TAG_BLACKLIST, re.IGNORECASE)

# 文件名非法字符替换表
_SANITIZE_TABLE = str.maketrans({
    "|": "—",
    "&": " and ",
    '"': "",
    "'": "",
    ":": "",
    "/": " ",
    "\\": " ",
    "*": " ",
    "?": " ",
    "<": " ",
    ">": " ",
})


class ShowInfo(NamedTuple):
    """剧集解析的中间结果"""
    title: str
    year: Optional[int]
    season: Optional[int]
    episode: Optional[int]


class MovieInfo(NamedTuple):
    """电影解析的中间结果"""
    title: str
    year: Optional[int]


def wrap_tag_pattern(pattern: str) -> re.Pattern[str]:
    """把黑名单包装为只在单词边界处匹配的正则

    Raises:
        re.error: 包装后无法编译（例如黑名单中间带有 (?i) 这类全局标志）
    """
    return re.compile(rf"(?<![A-Za-z0-9])(?:{pattern})(?![A-Za-z0-9])", re.IGNORECASE)


def compile_tag_blacklist(pattern: str | None) -> re.Pattern[str]:
    """编译标签黑名单，空值时使用默认列表

    Raises:
        ConfigurationError: 黑名单本身或包装后的形式不是合法的正则
    """
    if not pattern:
        return _DEFAULT_TAG_PATTERN
    try:
        compiled = re.compile(pattern, re.IGNORECASE)
        wrap_tag_pattern(pattern)
    except re.error as e:
        raise ConfigurationError(f"invalid tag blacklist '{pattern}': {e}") from e
    return compiled


def collapse_whitespace(text: str) -> str:
    return " ".join(text.split())


def sanitize_filename(text: str, default: str = "sanitized_name") -> str:
    """清理字符串中不能用于文件名的字符

    Args:
        text: 原始字符串
        default: 清理后为空时使用的占位名称

    Returns:
        str: 可直接用作文件或目录名的字符串
    """
    sanitized = text.strip().translate(_SANITIZE_TABLE)
    sanitized = collapse_whitespace(sanitized)
    sanitized = sanitized.strip(". ")
    return sanitized or default


def strip_tags(text: str, tag_blacklist: re.Pattern[str] | None = None) -> str:
    """移除画质、编码、发布组等标签

    标签只在单词边界处匹配，避免误删标题中的字母片段。
    """
    pattern = tag_blacklist or _DEFAULT_TAG_PATTERN
    wrapped = wrap_tag_pattern(pattern.pattern)
    return collapse_whitespace(wrapped.sub(" ", text))


def title_case(text: str) -> str:
    """每个单词首字母大写，其余小写"""
    return " ".join(word[:1].upper() + word[1:].lower() for word in text.split())


def is_valid_year(year: int) -> bool:
    return MIN_VALID_YEAR <= year <= MAX_VALID_YEAR


def determine_category(name: str, category_hint: MediaCategory | str | None = None) -> MediaCategory:
    """判断媒体分类

    提示为 Movies 或 Shows 时直接采用（即使名称中有相反的标记）；
    否则在名称中查找剧集标记，找不到时默认为电影。
    """
    if category_hint in (MediaCategory.MOVIES, MediaCategory.SHOWS):
        return MediaCategory(category_hint)
    if SHOW_MARKERS_RE.search(name):
        return MediaCategory.SHOWS
    return MediaCategory.MOVIES


def strip_extension(name: str) -> str:
    return EXTENSION_RE.sub("", name)


def extract_season_episode(name: str, has_extension: bool = True) -> tuple[Optional[int], Optional[int], str]:
    """查找第一个 SxxEyy 标记

    Returns:
        (季, 集, 标记之前的部分)。没有标记时季和集为 None，
        前缀为去掉扩展名的完整名称。
    """
    match = SEASON_EPISODE_RE.search(name)
    if not match:
        return None, None, strip_extension(name) if has_extension else name
    return int(match.group(1)), int(match.group(2)), name[:match.start()]


def extract_trailing_year(title: str) -> tuple[str, Optional[int]]:
    """从标题末尾提取年份

    年份前面紧跟季关键字（如 's01 2023'）时不提取；超出合理范围的年份丢弃，
    标题保持原样。
    """
    match = TRAILING_YEAR_RE.match(title)
    if not match:
        return title, None
    head, year_text = match.group(1), match.group(2)
    if SEASON_KEYWORD_AT_END_RE.search(head) or len(head) <= 2:
        return title, None
    year = int(year_text)
    if not is_valid_year(year):
        logger.debug(f"丢弃不合理的年份 {year}: '{title}'")
        return title, None
    return head.strip(), year


def _strip_brackets_at_edges(text: str) -> str:
    text = re.sub(r"^[\[(][^\])]*[\])]", "", text)
    return re.sub(r"[\[(][^\])]*[\])]$", "", text)


def _clean_show_title(raw_title: str, tag_blacklist: re.Pattern[str] | None) -> str:
    title = WWW_PREFIX_RE.sub("", raw_title)
    title = RELEASE_GROUP_RE.sub("", title)
    title = _strip_brackets_at_edges(title.lower())
    title = strip_tags(title, tag_blacklist)
    title = re.sub(r"[._-]", " ", title)
    return collapse_whitespace(title)


def _minimal_show_title(raw_title: str) -> str:
    title = WWW_PREFIX_RE.sub("", raw_title)
    title = RELEASE_GROUP_RE.sub("", title)
    title = re.sub(r"[._-]", " ", title)
    return title_case(collapse_whitespace(title))


def extract_show_info(
    name: str,
    tag_blacklist: re.Pattern[str] | None = None,
    has_extension: bool = True,
) -> ShowInfo:
    """解析剧集名称

    Args:
        name: 文件名或目录名
        tag_blacklist: 编译好的标签黑名单
        has_extension: 名称是否带扩展名（目录名为 False）

    Returns:
        ShowInfo: 标题可能是 UNKNOWN_SHOW，季/集可能为 None，由调用方判断是否失败
    """
    season, episode, raw_title = extract_season_episode(name, has_extension)

    title, year = extract_trailing_year(_clean_show_title(raw_title, tag_blacklist))
    title = sanitize_filename(title_case(title), UNKNOWN_SHOW)

    if title == UNKNOWN_SHOW and season is not None:
        scene_match = SCENE_NAME_RE.match(name)
        if scene_match:
            # Name.S01E04 形式保留原始大小写
            title = scene_match.group(1)
            logger.debug(f"使用 'Name.SxxExx' 规则提取标题: '{title}'")
        else:
            fallback, year = extract_trailing_year(_minimal_show_title(raw_title))
            title = sanitize_filename(fallback, UNKNOWN_SHOW)
            logger.debug(f"使用回退规则提取标题: '{title}'")

    logger.debug(f"剧集解析: '{name}' -> 标题='{title}', 年份={year}, 季={season}, 集={episode}")
    return ShowInfo(title=title, year=year, season=season, episode=episode)


def _strip_release_group(text: str, tag_blacklist: re.Pattern[str] | None) -> str:
    """移除末尾的 -GROUP 发布组后缀

    只有前面出现过标签或年份时才认为是发布组，避免把 'Spider-Man' 截断。
    """
    match = RELEASE_GROUP_RE.search(text)
    if not match:
        return text
    head = text[:match.start()]
    pattern = tag_blacklist or _DEFAULT_TAG_PATTERN
    if pattern.search(head) or BARE_YEAR_RE.search(head):
        return head
    return text


def _strip_bracketed(text: str) -> str:
    text = re.sub(r"\[[^\]]*\]", " ", text)
    text = re.sub(r"\((?!(?:19|20)\d{2}\))[^)]*\)", " ", text)
    return collapse_whitespace(text.replace("(", " ").replace(")", " "))


def extract_movie_info(
    name: str,
    tag_blacklist: re.Pattern[str] | None = None,
    has_extension: bool = True,
) -> MovieInfo:
    """解析电影名称

    优先使用名称中已有的 'Title (YYYY)'；否则从右向左查找四位数字，
    取第一个在合理范围内且之后不超过 15 个字符的作为年份。
    """
    stem = strip_extension(name) if has_extension else name
    spaced = collapse_whitespace(re.sub(r"[._]", " ", stem))

    explicit = EXPLICIT_YEAR_RE.match(spaced)
    if explicit and len(explicit.group(3).strip()) < 10 and is_valid_year(int(explicit.group(2))):
        title = sanitize_filename(title_case(explicit.group(1)), UNKNOWN_MOVIE)
        return MovieInfo(title=title, year=int(explicit.group(2)))

    cleaned = _strip_bracketed(_strip_release_group(spaced, tag_blacklist))
    cleaned = strip_tags(cleaned.lower(), tag_blacklist)

    title_part, year = cleaned, None
    for match in reversed(list(BARE_YEAR_RE.finditer(cleaned))):
        candidate = int(match.group(1))
        after = cleaned[match.end():].strip()
        if len(after) > 15:
            logger.debug(f"年份 {candidate} 之后内容过长，视为标题的一部分: '{cleaned}'")
            break
        if not is_valid_year(candidate):
            logger.debug(f"丢弃不合理的年份 {candidate}: '{cleaned}'")
            continue
        title_part, year = cleaned[:match.start()], candidate
        break

    title = sanitize_filename(title_case(title_part.strip(" -")), UNKNOWN_MOVIE)
    if title == UNKNOWN_MOVIE:
        year = None
    logger.debug(f"电影解析: '{name}' -> 标题='{title}', 年份={year}")
    return MovieInfo(title=title, year=year)


def classify(
    raw_name: str,
    category_hint: MediaCategory | str | None = None,
    tag_blacklist: re.Pattern[str] | None = None,
    *,
    has_extension: bool = True,
) -> ClassificationResult:
    """对项目名称进行完整分类

    Args:
        raw_name: 项目的文件名或目录名
        category_hint: 可选的分类提示，Movies/Shows 之外的值会被忽略
        tag_blacklist: 编译好的标签黑名单，None 时使用默认列表
        has_extension: 名称是否带扩展名，目录传 False

    Returns:
        ClassificationResult: 分类结果

    Raises:
        ClassificationError: 标题无法确定，或剧集缺少季/集信息
    """
    category = determine_category(raw_name, category_hint)

    if category == MediaCategory.SHOWS:
        info = extract_show_info(raw_name, tag_blacklist, has_extension)
        if info.title == UNKNOWN_SHOW or info.season is None or info.episode is None:
            raise ClassificationError(
                f"unknown show details (name or season/episode missing) for '{raw_name}'"
            )
        return ClassificationResult(
            category=category,
            title=info.title,
            year=info.year,
            season=info.season,
            episode=info.episode,
        )

    info = extract_movie_info(raw_name, tag_blacklist, has_extension)
    if info.title == UNKNOWN_MOVIE:
        raise ClassificationError(f"unknown movie title for '{raw_name}'")
    return ClassificationResult(category=category, title=info.title, year=info.year)
