"""
Resolution of app identifiers into backend owner/name pairs.
"""

import logging

from .backend_models import UserProfile
from .models import AppParams
from .request_manager import RequestManager

logger = logging.getLogger(__name__)

DEFAULT_SEPARATOR = "/"
# Some proxies decode %2F before routing, so "owner~~app" was used instead.
TILDE_SEPARATOR = "~~"


def qualify_app_name(app_owner: str, app_name: str, separator: str = DEFAULT_SEPARATOR) -> str:
    return f"{app_owner}{separator}{app_name}"


class AppNameResolver:
    """
    Resolve ``owner/app`` style identifiers.

    An identifier without the separator is taken to belong to the calling
    user, which costs one ``GET /user`` round trip. Callers that already
    know the owner should pass a qualified identifier.

    Args:
        request_manager: Executor used for the current-user lookup
        separator: Token splitting owner from app name
    """

    def __init__(self, request_manager: RequestManager, separator: str = DEFAULT_SEPARATOR):
        if not separator:
            raise ValueError("An app name separator must be specified.")
        self._request_manager = request_manager
        self.separator = separator

    def resolve(self, identifier: str) -> AppParams:
        if self.separator in identifier:
            app_owner, app_name = identifier.split(self.separator, 1)
            return AppParams(app_owner=app_owner, app_name=app_name)

        user = self.get_current_user()
        logger.info(f"resolve: '{identifier}' assumed to be owned by {user['name']}")
        return AppParams(app_owner=user["name"], app_name=identifier)

    def qualify(self, app_owner: str, app_name: str) -> str:
        return qualify_app_name(app_owner, app_name, self.separator)

    def get_current_user(self) -> UserProfile:
        return self._request_manager.get("/user").body
