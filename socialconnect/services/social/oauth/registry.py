# socialconnect/services/social/oauth/registry.py

from __future__ import annotations

from typing import Dict, Optional, Type

from ....config import PlatformConfig, load_platform_config
from ....constants.service_code import PROVIDER_PLATFORMS
from ..errors import NotFoundError
from .base import OAuthTokenClient
from .facebook import MetaTokenClient
from .linkedin import LinkedInTokenClient
from .pinterest import PinterestTokenClient
from .tiktok import TikTokTokenClient
from .x import XTokenClient
from .youtube import YouTubeTokenClient


TOKEN_CLIENTS: Dict[str, Type[OAuthTokenClient]] = {
    "facebook": MetaTokenClient,
    "linkedin": LinkedInTokenClient,
    "tiktok": TikTokTokenClient,
    "pinterest": PinterestTokenClient,
    "x": XTokenClient,
    "youtube": YouTubeTokenClient,
}


def get_token_client(provider: str, config: Optional[PlatformConfig] = None) -> OAuthTokenClient:
    provider = (provider or "").strip().lower()
    client_cls = TOKEN_CLIENTS.get(provider)
    if client_cls is None:
        raise NotFoundError(f"Unsupported provider: {provider}", code="PROVIDER_NOT_SUPPORTED")
    return client_cls(config or load_platform_config(provider))


def provider_for_platform(platform: str) -> str:
    """FACEBOOK and INSTAGRAM accounts both refresh through the Meta grant."""
    for provider, platforms in PROVIDER_PLATFORMS.items():
        if (platform or "").upper() in platforms:
            return provider
    raise NotFoundError(f"Unsupported platform: {platform}", code="PLATFORM_NOT_SUPPORTED")
