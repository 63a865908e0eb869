# socialconnect/services/social/publishers/registry.py

from ....constants.service_code import (
    PLATFORM_FACEBOOK,
    PLATFORM_INSTAGRAM,
    PLATFORM_LINKEDIN,
    PLATFORM_PINTEREST,
    PLATFORM_TIKTOK,
    PLATFORM_X,
    PLATFORM_YOUTUBE,
)
from ..errors import NotFoundError
from .facebook import FacebookPublisher
from .instagram import InstagramPublisher
from .linkedin import LinkedInPublisher
from .pinterest import PinterestPublisher
from .tiktok import TikTokPublisher
from .x import XPublisher
from .youtube import YouTubePublisher

PUBLISHERS = {
    PLATFORM_FACEBOOK: FacebookPublisher,
    PLATFORM_INSTAGRAM: InstagramPublisher,
    PLATFORM_LINKEDIN: LinkedInPublisher,
    PLATFORM_PINTEREST: PinterestPublisher,
    PLATFORM_TIKTOK: TikTokPublisher,
    PLATFORM_X: XPublisher,
    PLATFORM_YOUTUBE: YouTubePublisher,
}


def get_publisher(platform: str, media_resolver=None, api_base=None):
    cls = PUBLISHERS.get((platform or "").upper())
    if not cls:
        raise NotFoundError(f"Unsupported platform: {platform}", code="PLATFORM_NOT_SUPPORTED")
    return cls(media_resolver=media_resolver, api_base=api_base)
