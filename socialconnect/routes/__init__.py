#Blueprints for the social connection API
from ..resources import (
    blp_social_oauth,
    blp_social_accounts,
)


def register_routes(app, api):
    api.register_blueprint(blp_social_oauth, url_prefix="/api/v1")
    api.register_blueprint(blp_social_accounts, url_prefix="/api/v1")
