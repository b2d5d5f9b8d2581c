"""
codepush-management-client

A Python client for the CodePush management API, supporting apps,
deployments, collaborators, access keys and release packages.
"""

from .account_manager import AccountManager
from .adapter import Adapter
from .name_resolver import AppNameResolver
from .request_manager import RequestManager
from .file_upload import FileUploadClient
from .reports import ReleaseReportProcessor, create_release_report_processor
from .exceptions import (
    CodePushError,
    UnauthorizedError,
    NotFoundError,
    ConflictError,
    ServerError,
    GatewayTimeoutError,
)
from . import utils

__version__ = "1.0.0"

__all__ = [
    "AccountManager",
    "Adapter",
    "AppNameResolver",
    "RequestManager",
    "FileUploadClient",
    "ReleaseReportProcessor",
    "create_release_report_processor",
    "CodePushError",
    "UnauthorizedError",
    "NotFoundError",
    "ConflictError",
    "ServerError",
    "GatewayTimeoutError",
    "utils",
]
