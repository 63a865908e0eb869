# Social account resources
from .social.oauth_resource import blp_social_oauth
from .social.accounts_resource import blp_social_accounts
