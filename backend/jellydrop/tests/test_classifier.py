"""
classifier.py 单元测试

覆盖每个独立阶段（清理、去标签、年份、季/集、分类）以及完整的 classify 流程。
"""

import pytest

from jellydrop.core.classifier import (
    UNKNOWN_MOVIE,
    UNKNOWN_SHOW,
    classify,
    compile_tag_blacklist,
    determine_category,
    extract_movie_info,
    extract_season_episode,
    extract_show_info,
    extract_trailing_year,
    sanitize_filename,
    strip_tags,
    title_case,
)
from jellydrop.core.errors import ClassificationError, ConfigurationError
from jellydrop.core.models import MediaCategory


class TestSanitizeFilename:
    """测试文件名清理函数"""

    def test_substitution_table(self):
        assert sanitize_filename("Tom & Jerry: The Movie") == "Tom and Jerry The Movie"

    def test_pipe_becomes_em_dash(self):
        assert sanitize_filename("Before | After") == "Before — After"

    def test_quotes_removed(self):
        assert sanitize_filename("Ocean's \"Eleven\"") == "Oceans Eleven"

    def test_path_characters_replaced(self):
        assert sanitize_filename("AC/DC Live? <Now>") == "AC DC Live Now"

    def test_trims_dots_and_spaces(self):
        assert sanitize_filename("  ..Title..  ") == "Title"

    def test_empty_falls_back_to_default(self):
        assert sanitize_filename(" ... ", UNKNOWN_MOVIE) == UNKNOWN_MOVIE


class TestStripTags:
    """测试标签剔除"""

    def test_default_blacklist(self):
        assert strip_tags("movie 1080p web-dl x265 hevc") == "movie"

    def test_tags_inside_words_are_kept(self):
        # 'aac' 出现在单词内部时不删除
        assert strip_tags("isaac") == "isaac"

    def test_custom_blacklist(self):
        pattern = compile_tag_blacklist("proper|repack")
        assert strip_tags("title PROPER repack 1080p", pattern) == "title 1080p"

    def test_inline_global_flag_rejected(self):
        with pytest.raises(ConfigurationError):
            compile_tag_blacklist(r"(?i)1080p|x265")

    def test_invalid_blacklist_rejected(self):
        with pytest.raises(ConfigurationError):
            compile_tag_blacklist("1080p|(unclosed")


class TestSmallStages:
    """测试标题大小写和分类判断"""

    def test_title_case(self):
        assert title_case("tHE gREAT eSCAPE") == "The Great Escape"

    @pytest.mark.parametrize("name", [
        "Show.Name.S01E05.720p.mkv",
        "show name 1x02",
        "Documentary Season 2",
        "Anime Episode 12",
        "Miniseries Part IV",
        "Some Series Complete",
        "Show.Season.Pack.1080p",
    ])
    def test_show_markers(self, name):
        assert determine_category(name) == MediaCategory.SHOWS

    def test_no_markers_is_movie(self):
        assert determine_category("Inception.2010.1080p.BluRay.mkv") == MediaCategory.MOVIES

    def test_hint_always_wins(self):
        assert determine_category("Show.Name.S01E05.mkv", "Movies") == MediaCategory.MOVIES
        assert determine_category("Inception.2010.mkv", MediaCategory.SHOWS) == MediaCategory.SHOWS

    def test_unknown_hint_ignored(self):
        assert determine_category("Inception.2010.mkv", "Music") == MediaCategory.MOVIES


class TestExtractors:
    """测试年份和季/集提取"""

    def test_season_episode(self):
        season, episode, prefix = extract_season_episode("Show.Name.S02E113.mkv")
        assert (season, episode, prefix) == (2, 113, "Show.Name.")

    def test_no_season_episode_strips_extension(self):
        assert extract_season_episode("Show.Name.mkv") == (None, None, "Show.Name")

    def test_directory_name_keeps_last_segment(self):
        assert extract_season_episode("Show.Name", has_extension=False) == (None, None, "Show.Name")

    def test_trailing_year(self):
        assert extract_trailing_year("doctor who 2005") == ("doctor who", 2005)

    def test_trailing_year_after_season_keyword_kept(self):
        assert extract_trailing_year("show s1 2023") == ("show s1 2023", None)

    def test_trailing_year_short_head_kept(self):
        assert extract_trailing_year("xy 2020") == ("xy 2020", None)

    def test_trailing_year_out_of_range_discarded(self):
        assert extract_trailing_year("future 2099") == ("future 2099", None)
        assert extract_trailing_year("silent 1919") == ("silent 1919", None)


class TestExtractShowInfo:
    """测试剧集解析"""

    def test_basic(self):
        info = extract_show_info("Show.Name.S01E05.720p.mkv")
        assert info == ("Show Name", None, 1, 5)

    def test_year_and_www_prefix(self):
        info = extract_show_info("www.Example.org - Doctor.Who.2005.S13E01.1080p.WEB-DL.mkv")
        assert info.title == "Doctor Who"
        assert info.year == 2005

    def test_release_group_and_brackets(self):
        info = extract_show_info("[Group] The.Office.S03E10-GRP.mkv")
        assert info.title == "The Office"
        assert (info.season, info.episode) == (3, 10)

    def test_scene_name_fallback_keeps_case(self):
        # 标题全部由标签组成，回退为 Name.SxxExx 中的原始名称
        info = extract_show_info("HEVC.S01E04.mkv")
        assert info.title == "HEVC"

    def test_missing_title(self):
        info = extract_show_info("S01E04.mkv")
        assert info.title == UNKNOWN_SHOW


class TestExtractMovieInfo:
    """测试电影解析"""

    def test_scene_release(self):
        info = extract_movie_info("A.Minecraft.Movie.2025.1080p.WEB-DL.x265-NeoNoir.mkv")
        assert info == ("A Minecraft Movie", 2025)

    def test_explicit_year_form(self):
        assert extract_movie_info("The Matrix (1999).mkv") == ("The Matrix", 1999)

    def test_year_followed_by_long_text_is_title(self):
        info = extract_movie_info("Blade Runner 2049 the final cut extended edition.mkv")
        assert info.year is None
        assert info.title.startswith("Blade Runner 2049")

    def test_out_of_range_year_not_extracted(self):
        info = extract_movie_info("Movie.1850.mkv")
        assert info.year is None
        assert "1850" in info.title

    def test_valid_year_left_of_implausible_number(self):
        assert extract_movie_info("Movie.Title.2019.1440p.mkv") == ("Movie Title", 2019)

    def test_only_implausible_numbers(self):
        info = extract_movie_info("Movie.1850.1440p.mkv")
        assert info.year is None
        assert info.title == "Movie 1850 1440p"

    def test_hyphenated_title_preserved(self):
        assert extract_movie_info("Spider-Man.mkv").title.lower() == "spider-man"

    def test_directory_name_not_truncated(self):
        info = extract_movie_info("Star.Wars.1977.720p", has_extension=False)
        assert info == ("Star Wars", 1977)

    def test_empty_title(self):
        assert extract_movie_info("1080p.mkv").title == UNKNOWN_MOVIE


class TestClassify:
    """测试完整分类流程"""

    def test_movie(self):
        result = classify("A.Minecraft.Movie.2025.1080p.WEB-DL.x265-NeoNoir.mkv")
        assert result.category == MediaCategory.MOVIES
        assert result.display_title == "A Minecraft Movie (2025)"

    def test_show_padding(self):
        result = classify("Show.Name.S1E5.720p.mkv")
        assert result.category == MediaCategory.SHOWS
        assert result.episode_code == "S01E05"

    def test_three_digit_episode_as_is(self):
        assert classify("Anime.S01E105.mkv").episode_code == "S01E105"

    def test_reclassifying_display_title_keeps_year(self):
        first = classify("A.Minecraft.Movie.2025.1080p.WEB-DL.x265-NeoNoir.mkv")
        second = classify(first.display_title, has_extension=False)
        assert second.year == first.year
        assert second.title == first.title

    def test_show_without_episode_fails(self):
        with pytest.raises(ClassificationError) as exc_info:
            classify("Some Show Season Pack.mkv")
        assert "season/episode" in exc_info.value.message

    def test_show_hint_without_episode_fails(self):
        with pytest.raises(ClassificationError):
            classify("Inception.2010.mkv", "Shows")

    def test_movie_without_title_fails(self):
        with pytest.raises(ClassificationError):
            classify("1080p.x265.mkv")
