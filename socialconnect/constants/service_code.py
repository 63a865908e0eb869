
HTTP_STATUS_CODES = {
    "OK": 200,
    "CREATED": 201,
    "ACCEPTED": 202,
    "NO_CONTENT": 204,
    "FOUND": 302,
    "BAD_REQUEST": 400,
    "UNAUTHORIZED": 401,
    "FORBIDDEN": 403,
    "NOT_FOUND": 404,
    "CONFLICT": 409,
    "VALIDATION_ERROR": 422,
    "TOO_MANY_REQUESTS": 429,
    "INTERNAL_SERVER_ERROR": 500,
    "BAD_GATEWAY": 502,
    "SERVICE_UNAVAILABLE": 503,
}

# ----------------------------------------------------------------
# Platforms
# ----------------------------------------------------------------
PLATFORM_FACEBOOK = "FACEBOOK"
PLATFORM_INSTAGRAM = "INSTAGRAM"
PLATFORM_LINKEDIN = "LINKEDIN"
PLATFORM_TIKTOK = "TIKTOK"
PLATFORM_PINTEREST = "PINTEREST"
PLATFORM_X = "X"
PLATFORM_YOUTUBE = "YOUTUBE"

PLATFORMS = (
    PLATFORM_FACEBOOK,
    PLATFORM_INSTAGRAM,
    PLATFORM_LINKEDIN,
    PLATFORM_TIKTOK,
    PLATFORM_PINTEREST,
    PLATFORM_X,
    PLATFORM_YOUTUBE,
)

# OAuth providers (one Meta grant covers Facebook pages and Instagram accounts)
PROVIDER_PLATFORMS = {
    "facebook": (PLATFORM_FACEBOOK, PLATFORM_INSTAGRAM),
    "linkedin": (PLATFORM_LINKEDIN,),
    "tiktok": (PLATFORM_TIKTOK,),
    "pinterest": (PLATFORM_PINTEREST,),
    "x": (PLATFORM_X,),
    "youtube": (PLATFORM_YOUTUBE,),
}

# Platforms whose accounts need an explicit choice before they may publish
MANUAL_PUBLISH_PLATFORMS = (PLATFORM_LINKEDIN,)

# ----------------------------------------------------------------
# Connected account status
# ----------------------------------------------------------------
STATUS_ACTIVE = "ACTIVE"
STATUS_EXPIRED = "EXPIRED"
STATUS_REVOKED = "REVOKED"
STATUS_DISCONNECTED = "DISCONNECTED"

ACCOUNT_STATUSES = (STATUS_ACTIVE, STATUS_EXPIRED, STATUS_REVOKED, STATUS_DISCONNECTED)

# ----------------------------------------------------------------
# Publication content types
# ----------------------------------------------------------------
CONTENT_PHOTO = "PHOTO"
CONTENT_VIDEO = "VIDEO"
CONTENT_CAROUSEL = "CAROUSEL"
CONTENT_LINK = "LINK"
CONTENT_STORY = "STORY"
CONTENT_REEL = "REEL"

CONTENT_TYPES = (CONTENT_PHOTO, CONTENT_VIDEO, CONTENT_CAROUSEL, CONTENT_LINK, CONTENT_STORY, CONTENT_REEL)

MEDIA_IMAGE = "IMAGE"
MEDIA_VIDEO = "VIDEO"

# ----------------------------------------------------------------
# Activity
# ----------------------------------------------------------------
ACTIVITY_CONNECTED = "social_account.connected"
ACTIVITY_RECONNECTED = "social_account.reconnected"
ACTIVITY_DISCONNECTED = "social_account.disconnected"
ACTIVITY_DELETED = "social_account.deleted"

ACTOR_USER = "USER"
ACTOR_INTEGRATION = "INTEGRATION"

DEFAULT_LOCALE = "tr"
