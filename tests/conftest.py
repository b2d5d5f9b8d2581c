"""
Shared fixtures for codepush-management-client tests.
"""

import pytest
from unittest.mock import Mock

from codepush_management.exceptions import NotFoundError
from codepush_management.request_manager import JsonResponse


TEST_USER = {
    "id": "testId",
    "avatar_url": "testAvatarUrl",
    "can_change_password": False,
    "display_name": "testDisplayName",
    "email": "testEmail",
    "name": "testUserName",
    "permissions": ["manager"],
}


def make_request_manager(routes=None):
    """
    Build a mock request executor answering GETs from ``routes``.

    ``routes`` maps a path to a response body, or to an exception to raise.
    POST, PATCH and DELETE return an empty response unless configured.
    """
    routes = dict(routes or {})
    manager = Mock()

    def get(path, expect_body=True):
        if path not in routes:
            raise NotFoundError(f"No route for {path}")
        body = routes[path]
        if isinstance(body, Exception):
            raise body
        return JsonResponse(headers={}, body=body)

    manager.get.side_effect = get
    manager.post.return_value = JsonResponse(headers={}, body=None)
    manager.patch.return_value = JsonResponse(headers={}, body=None)
    manager.delete.return_value = JsonResponse(headers={}, body=None)
    manager.routes = routes
    return manager


@pytest.fixture
def test_user():
    return dict(TEST_USER)


@pytest.fixture
def route_requests():
    """Factory fixture for mock request executors with custom routes."""
    return make_request_manager


@pytest.fixture
def request_manager():
    """Mock request executor that knows the current user."""
    return make_request_manager({"/user": dict(TEST_USER)})
