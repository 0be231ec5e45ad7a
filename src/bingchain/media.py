# media.py
# Embedded media side-channel.
#
# After each completion is classified the agent hands any image or video
# URLs it mentions to a sink. The default sink shows them through the
# image and video tools. Nothing here can change what the parser decided.

import re

from bingchain import display
from bingchain.models import MediaLinks
from bingchain.registry import ToolRegistry

_URL_BODY = r"https://[^\s<>\"'()\[\]]+?"

IMAGE_PATTERN = re.compile(_URL_BODY + r"\.(?:png|jpe?g|webp|svg|gif|tiff|bmp)\b", re.IGNORECASE)
VIDEO_PATTERN = re.compile(_URL_BODY + r"\.mp4\b", re.IGNORECASE)


def _unique(urls: list[str]) -> list[str]:
    return list(dict.fromkeys(urls))


def scan_media(text: str) -> MediaLinks:
    images = [
        url for url in IMAGE_PATTERN.findall(text)
        if not (url.lower().endswith(".png") and "favicon" in url.lower())
    ]
    videos = VIDEO_PATTERN.findall(text)
    return MediaLinks(images=_unique(images), videos=_unique(videos))


class MediaRenderer:
    """Default media sink: dispatches each URL to the image or video tool."""

    def __init__(self, registry: ToolRegistry) -> None:
        self.registry = registry

    def __call__(self, links: MediaLinks) -> None:
        for kind, urls in (("image", links.images), ("video", links.videos)):
            for url in urls:
                try:
                    self.registry.dispatch(kind, url)
                except Exception as exc:
                    display.media_failed(url, str(exc))
