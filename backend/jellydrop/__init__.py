"""JellyDrop: 把下载完成的电影和剧集整理进 Jellyfin 媒体库"""

__version__ = "0.1.0"
