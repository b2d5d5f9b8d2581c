"""
CodePush management client.

This module provides the public API for managing apps, deployments,
collaborators, access keys and releases. Every operation resolves the app
name, calls the management API and maps the response back to the stable
legacy shapes, so callers never see the backend's wire format.
"""

import logging
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

from . import adapter
from .adapter import Adapter
from .exceptions import NotFoundError, UnauthorizedError
from .file_upload import FileUploadClient
from .models import (
    AccessKey,
    Account,
    App,
    AppCreationRequest,
    AppParams,
    CollaboratorMap,
    Deployment,
    DeploymentMetrics,
    Package,
    PackageInfo,
    ReleaseUploadAssets,
)
from .name_resolver import DEFAULT_SEPARATOR, AppNameResolver
from .package_file import package_file_from_path
from .request_manager import RequestManager
from .utils import url_encode

logger = logging.getLogger(__name__)

DEPRECATED_METHOD_MESSAGE = "Method is deprecated"


class AccountManager:
    """
    CodePush management API client.

    Args:
        access_key: Your API token
        custom_headers: Optional headers sent with every request
        server_url: Optional management API base URL
        proxy: Optional proxy URL
        app_name_separator: Token splitting owner from app name in identifiers
        request_manager: Optional pre-built request executor
        upload_client: Optional pre-built upload client
    """

    class AppPermission:
        OWNER = "Owner"
        COLLABORATOR = "Collaborator"

    def __init__(
        self,
        access_key: str,
        custom_headers: Optional[Dict[str, str]] = None,
        server_url: Optional[str] = None,
        proxy: Optional[str] = None,
        app_name_separator: str = DEFAULT_SEPARATOR,
        request_manager: Optional[RequestManager] = None,
        upload_client: Optional[FileUploadClient] = None,
    ):
        """Initialize the CodePush management client."""
        if not access_key:
            raise UnauthorizedError("A token must be specified.")

        self._access_key = access_key
        self._request_manager = request_manager or RequestManager(
            access_key, custom_headers, server_url, proxy
        )
        self._resolver = AppNameResolver(self._request_manager, app_name_separator)
        self._adapter = Adapter(self._request_manager, self._resolver)
        self._upload_client = upload_client or FileUploadClient(proxy=proxy)

    @property
    def access_key(self) -> str:
        return self._access_key

    def is_authenticated(self, throw_if_unauthorized: bool = False) -> bool:
        """
        Check whether the access key is accepted by the server.

        Args:
            throw_if_unauthorized: Raise instead of returning False on a 401

        Returns:
            True if the current user could be fetched

        Raises:
            UnauthorizedError: On a 401 when ``throw_if_unauthorized`` is set
            CodePushError: On any other failure
        """
        try:
            response = self._request_manager.get("/user", expect_body=False)
        except UnauthorizedError:
            if throw_if_unauthorized:
                raise
            return False

        return bool(response.body)

    # ===== ACCESS KEYS =====

    def add_access_key(self, friendly_name: str, ttl: Optional[int] = None) -> AccessKey:
        """Create an API token. Tokens never expire, so ``ttl`` is ignored."""
        if not friendly_name:
            raise UnauthorizedError("A name must be specified when adding an access key.")

        response = self._request_manager.post(
            "/api_tokens", {"description": friendly_name}, expect_body=True
        )
        return adapter.access_key_from_token(response.body)

    def get_access_keys(self) -> List[AccessKey]:
        response = self._request_manager.get("/api_tokens")
        return adapter.access_key_list_from_tokens(response.body)

    def remove_access_key(self, name: str) -> None:
        api_token = self._adapter.resolve_access_key(name)
        self._request_manager.delete(f"/api_tokens/{url_encode(api_token['id'])}")

    # ===== ACCOUNT =====

    def get_account_info(self) -> Account:
        response = self._request_manager.get("/user")
        return adapter.account_from_profile(response.body)

    # ===== APPS =====

    def get_apps(self) -> List[App]:
        response = self._request_manager.get("/apps")
        return self._adapter.apps_from_backend(response.body)

    def get_app(self, app_name: str) -> App:
        app_params = self._resolver.resolve(app_name)
        response = self._request_manager.get(self._app_path(app_params))
        return self._adapter.app_from_backend(response.body)

    def add_app(
        self,
        app_name: str,
        app_os: str,
        app_platform: str,
        manually_provision_deployments: bool = False,
    ) -> AppCreationRequest:
        """
        Create an app, optionally under an organization (``org/app``).

        Unless ``manually_provision_deployments`` is set, the Staging and
        Production deployments are created as well.
        """
        app: AppCreationRequest = {
            "name": app_name,
            "os": app_os,
            "platform": app_platform,
            "manuallyProvisionDeployments": manually_provision_deployments,
        }

        creation_request = self._adapter.build_app_creation_request(app)
        org = creation_request["org"]
        path = f"/orgs/{url_encode(org)}/apps" if org else "/apps"
        logger.info(f"add_app: Creating {creation_request['app']['display_name']} at {path}")
        self._request_manager.post(path, creation_request["app"], expect_body=False)

        if not manually_provision_deployments:
            self._adapter.add_standard_deployments(self._resolver.resolve(app_name))

        return app

    def remove_app(self, app_name: str) -> None:
        app_params = self._resolver.resolve(app_name)
        self._request_manager.delete(self._app_path(app_params))

    def rename_app(self, old_app_name: str, new_app_name: str) -> None:
        app_params = self._resolver.resolve(old_app_name)
        updated_app = self._adapter.build_renamed_app(
            new_app_name, app_params.app_owner, app_params.app_name
        )
        self._request_manager.patch(self._app_path(app_params), updated_app)

    def transfer_app(self, app_name: str, org_name: str) -> None:
        app_params = self._resolver.resolve(app_name)
        self._request_manager.post(
            self._app_path(app_params, "transfer", org_name), None, expect_body=False
        )

    # ===== COLLABORATORS =====

    def get_collaborators(self, app_name: str) -> CollaboratorMap:
        app_params = self._resolver.resolve(app_name)
        response = self._request_manager.get(self._app_path(app_params, "users"))
        return self._adapter.collaborators_from_users(response.body, app_params.app_owner)

    def add_collaborator(self, app_name: str, email: str) -> None:
        app_params = self._resolver.resolve(app_name)
        self._request_manager.post(
            self._app_path(app_params, "invitations"),
            {"user_email": email},
            expect_body=False,
        )

    def remove_collaborator(self, app_name: str, email: str) -> None:
        app_params = self._resolver.resolve(app_name)
        self._request_manager.delete(self._app_path(app_params, "invitations", email))

    # ===== DEPLOYMENTS =====

    def add_deployment(self, app_name: str, deployment_name: str) -> Deployment:
        app_params = self._resolver.resolve(app_name)
        response = self._request_manager.post(
            self._app_path(app_params) + "/deployments/",
            {"name": deployment_name},
            expect_body=True,
        )
        return adapter.deployment_from_backend(response.body)

    def clear_deployment_history(self, app_name: str, deployment_name: str) -> None:
        app_params = self._resolver.resolve(app_name)
        self._request_manager.delete(
            self._app_path(app_params, "deployments", deployment_name, "releases")
        )

    def get_deployments(self, app_name: str) -> List[Deployment]:
        app_params = self._resolver.resolve(app_name)
        response = self._request_manager.get(self._app_path(app_params) + "/deployments/")
        return adapter.deployments_from_backend(response.body)

    def get_deployment(self, app_name: str, deployment_name: str) -> Deployment:
        app_params = self._resolver.resolve(app_name)
        response = self._request_manager.get(
            self._app_path(app_params, "deployments", deployment_name)
        )
        return adapter.deployment_from_backend(response.body)

    def rename_deployment(
        self, app_name: str, old_deployment_name: str, new_deployment_name: str
    ) -> None:
        app_params = self._resolver.resolve(app_name)
        self._request_manager.patch(
            self._app_path(app_params, "deployments", old_deployment_name),
            {"name": new_deployment_name},
        )

    def remove_deployment(self, app_name: str, deployment_name: str) -> None:
        app_params = self._resolver.resolve(app_name)
        self._request_manager.delete(
            self._app_path(app_params, "deployments", deployment_name)
        )

    def get_deployment_metrics(
        self, app_name: str, deployment_name: str
    ) -> DeploymentMetrics:
        app_params = self._resolver.resolve(app_name)
        response = self._request_manager.get(
            self._app_path(app_params, "deployments", deployment_name, "metrics")
        )
        return adapter.deployment_metrics_from_backend(response.body)

    def get_deployment_history(self, app_name: str, deployment_name: str) -> List[Package]:
        app_params = self._resolver.resolve(app_name)
        response = self._request_manager.get(
            self._app_path(app_params, "deployments", deployment_name, "releases")
        )
        return adapter.releases_from_backend(response.body)

    # ===== RELEASES =====

    def release(
        self,
        app_name: str,
        deployment_name: str,
        file_path: Union[str, Path],
        target_binary_version: str,
        update_metadata: Optional[PackageInfo] = None,
        upload_progress_callback: Optional[Callable[[float], None]] = None,
    ) -> Package:
        """
        Upload a release package and commit it to a deployment.

        Args:
            app_name: App identifier, optionally ``owner/app``
            deployment_name: Deployment receiving the release
            file_path: File to upload, or a directory to zip first
            target_binary_version: Binary version range the release targets
            update_metadata: Optional description, rollout and flags
            upload_progress_callback: Called with the percentage uploaded

        Returns:
            The committed release

        Note:
            A temporary archive built from a directory is always deleted,
            and nothing is committed unless the upload succeeded.
        """
        metadata: PackageInfo = dict(update_metadata or {})  # type: ignore[assignment]
        metadata["appVersion"] = target_binary_version

        with package_file_from_path(file_path) as package_file:
            app_params = self._resolver.resolve(app_name)
            deployment_path = self._app_path(app_params, "deployments", deployment_name)

            assets_response = self._request_manager.post(
                f"{deployment_path}/uploads", None, expect_body=True
            )
            assets: ReleaseUploadAssets = assets_response.body

            source = "temporary archive" if package_file.is_temporary else "file"
            logger.info(
                f"release: Uploading {source} {package_file.path} as asset {assets['id']}"
            )
            self._upload_client.upload(
                asset_id=assets["id"],
                asset_domain=assets["upload_domain"],
                asset_token=assets["token"],
                file_path=package_file.path,
                on_progress=upload_progress_callback,
            )

            release_upload = adapter.build_release_upload_properties(
                metadata, assets, deployment_name
            )
            release_response = self._request_manager.post(
                f"{deployment_path}/releases", release_upload, expect_body=True
            )
            return adapter.release_from_backend(release_response.body)

    def patch_release(
        self,
        app_name: str,
        deployment_name: str,
        label: str,
        update_metadata: PackageInfo,
    ) -> None:
        app_params = self._resolver.resolve(app_name)
        modification = adapter.build_release_modification(update_metadata)
        self._request_manager.patch(
            self._app_path(app_params, "deployments", deployment_name, "releases", label),
            modification,
            expect_body=False,
        )

    def promote(
        self,
        app_name: str,
        source_deployment_name: str,
        destination_deployment_name: str,
        update_metadata: PackageInfo,
    ) -> Package:
        app_params = self._resolver.resolve(app_name)
        modification = adapter.build_release_modification(update_metadata)
        response = self._request_manager.post(
            self._app_path(
                app_params,
                "deployments",
                source_deployment_name,
                "promote_release",
                destination_deployment_name,
            ),
            modification,
            expect_body=True,
        )
        return adapter.release_from_backend(response.body)

    def rollback(
        self, app_name: str, deployment_name: str, target_release: Optional[str] = None
    ) -> None:
        app_params = self._resolver.resolve(app_name)
        body = {"label": target_release} if target_release else {}
        self._request_manager.post(
            self._app_path(app_params, "deployments", deployment_name, "rollback_release"),
            body,
            expect_body=False,
        )

    # ===== DEPRECATED =====
    # Superseded by API tokens; kept so old callers get a clear error.

    def get_access_key(self, access_key_name: str) -> AccessKey:
        raise self._deprecated_method_error()

    def get_sessions(self) -> list:
        raise self._deprecated_method_error()

    def patch_access_key(
        self, old_name: str, new_name: Optional[str] = None, ttl: Optional[int] = None
    ) -> AccessKey:
        raise self._deprecated_method_error()

    def remove_session(self, machine_name: str) -> None:
        raise self._deprecated_method_error()

    @staticmethod
    def _deprecated_method_error() -> NotFoundError:
        return NotFoundError(DEPRECATED_METHOD_MESSAGE)

    @staticmethod
    def _app_path(app_params: AppParams, *segments: str) -> str:
        """Build ``/apps/{owner}/{app}[/segment...]`` with every part escaped."""
        parts = [app_params.app_owner, app_params.app_name, *segments]
        return "/apps/" + "/".join(url_encode(part) for part in parts)
