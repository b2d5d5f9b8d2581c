"""
Mapping between the backend wire format and the legacy client model.

The module level functions are pure: they only reshape data and validate
requests. :class:`Adapter` adds the few mappings that need extra lookups
(the calling user, an app's deployments, the existing app on rename).
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional

from . import backend_models as backend
from . import models
from .exceptions import ConflictError, NotFoundError
from .name_resolver import DEFAULT_SEPARATOR, AppNameResolver, qualify_app_name
from .request_manager import RequestManager
from .utils import (
    NEVER_EXPIRES,
    parse_timestamp,
    url_encode,
    validate_app_name,
    validate_app_os,
    validate_app_platform,
)

logger = logging.getLogger(__name__)

DEFAULT_ROLLOUT = 100
STANDARD_DEPLOYMENTS = ["Staging", "Production"]

PERMISSION_OWNER = "Owner"
PERMISSION_MANAGER = "Manager"
PERMISSION_COLLABORATOR = "Collaborator"
PERMISSION_READER = "Reader"

# Optional release fields copied only when the backend sent a value.
_OPTIONAL_RELEASE_FIELDS = [
    ("target_binary_range", "appVersion"),
    ("description", "description"),
    ("label", "label"),
    ("package_hash", "packageHash"),
    ("diff_package_map", "diffPackageMap"),
    ("original_label", "originalLabel"),
    ("original_deployment", "originalDeployment"),
    ("released_by", "releasedBy"),
    ("releasedByUserId", "releasedByUserId"),
    ("release_method", "releaseMethod"),
]


# ===== ACCOUNT AND ACCESS KEYS =====


def account_from_profile(profile: backend.UserProfile) -> models.Account:
    return {
        "name": profile.get("name"),
        "email": profile.get("email"),
        "linkedProviders": [],
    }


def access_key_from_token(api_token: backend.ApiToken) -> models.AccessKey:
    """Map a freshly created token; ``key`` is the only time the secret is visible."""
    return {
        "createdTime": parse_timestamp(api_token.get("created_at")),
        "expires": NEVER_EXPIRES,
        "key": api_token.get("api_token"),
        "name": api_token.get("description"),
    }


def access_key_list_from_tokens(
    api_tokens: List[backend.ApiTokensGetResponse],
) -> List[models.AccessKey]:
    """
    Map listed tokens to access keys, oldest first.

    Tokens without a creation time sort as if created at the epoch.
    """
    access_keys: List[models.AccessKey] = [
        {
            "createdTime": parse_timestamp(api_token.get("created_at")),
            "expires": NEVER_EXPIRES,
            "name": api_token.get("description"),
        }
        for api_token in api_tokens
    ]
    access_keys.sort(key=lambda access_key: access_key["createdTime"] or 0)
    return access_keys


# ===== RELEASES AND DEPLOYMENTS =====


def release_from_backend(
    release: Optional[backend.CodePushRelease],
) -> Optional[models.Package]:
    """
    Map a backend release to a client package.

    Args:
        release: Backend release, or None when the deployment has none

    Returns:
        The package, or None. ``rollout`` falls back to 100 when unset.
    """
    if release is None:
        return None

    package: models.Package = {
        "blobUrl": release.get("blob_url"),
        "size": release.get("size"),
        "uploadTime": release.get("upload_time"),
        "isDisabled": bool(release.get("is_disabled")),
        "isMandatory": bool(release.get("is_mandatory")),
    }

    for backend_field, client_field in _OPTIONAL_RELEASE_FIELDS:
        value = release.get(backend_field)
        if value:
            package[client_field] = value  # type: ignore[literal-required]

    rollout = release.get("rollout")
    package["rollout"] = DEFAULT_ROLLOUT if rollout is None else rollout

    return package


def releases_from_backend(
    releases: List[backend.CodePushRelease],
) -> List[models.Package]:
    """Map a deployment history, keeping the backend's order."""
    return [release_from_backend(release) for release in releases]


def deployment_from_backend(deployment: backend.Deployment) -> models.Deployment:
    result: models.Deployment = {
        "name": deployment.get("name"),
        "key": deployment.get("key"),
        "package": release_from_backend(deployment.get("latest_release")),
    }
    if deployment.get("id"):
        result["id"] = deployment["id"]
    if deployment.get("createdTime"):
        result["createdTime"] = deployment["createdTime"]
    return result


def deployments_from_backend(
    deployments: List[backend.Deployment],
) -> List[models.Deployment]:
    ordered = sorted(deployments, key=lambda deployment: deployment.get("name") or "")
    return [deployment_from_backend(deployment) for deployment in ordered]


def deployment_metrics_from_backend(
    deployment_metrics: List[backend.DeploymentMetrics],
) -> models.DeploymentMetrics:
    return {
        metrics["label"]: {
            "active": metrics.get("active", 0),
            "downloaded": metrics.get("downloaded", 0),
            "failed": metrics.get("failed", 0),
            "installed": metrics.get("installed", 0),
        }
        for metrics in deployment_metrics
    }


# ===== APPS AND COLLABORATORS =====


def permission_from_role(role: Optional[str], is_owner: bool) -> str:
    if role == "manager":
        return PERMISSION_OWNER if is_owner else PERMISSION_MANAGER
    elif role == "developer":
        return PERMISSION_COLLABORATOR
    return PERMISSION_READER


def app_from_parts(
    app: backend.App,
    user: backend.UserProfile,
    deployment_names: List[str],
    separator: str = DEFAULT_SEPARATOR,
) -> models.App:
    """
    Build a client app once the calling user and deployments are known.

    Apps owned by someone else are qualified as ``owner/app`` (with the
    configured separator); a display name differing from the app name is
    appended in parentheses.
    """
    owner = app.get("owner") or {}
    is_current_account = user.get("id") == owner.get("id")

    app_name = app.get("name")
    if not is_current_account:
        app_name = qualify_app_name(owner.get("name"), app_name, separator)

    display_name = app.get("display_name")
    if display_name and display_name != app.get("name"):
        app_name += f" ({display_name})"

    return {
        "name": app_name,
        "collaborators": {
            owner.get("name"): {
                "isCurrentAccount": is_current_account,
                "permission": PERMISSION_OWNER,
            }
        },
        "deployments": deployment_names,
        "os": app.get("os"),
        "platform": app.get("platform"),
    }


def build_app_creation_request(
    app_to_create: models.AppCreationRequest, separator: str = DEFAULT_SEPARATOR
) -> backend.AppCreationPayload:
    """
    Validate a legacy app creation request and build the backend payload.

    A name of the form ``org/app`` creates the app under that organization.

    Args:
        app_to_create: Requested name, OS and platform
        separator: Token splitting the organization from the app name

    Returns:
        Dictionary with the target ``org`` (or None) and the ``app`` body

    Raises:
        ConflictError: If the OS, platform or name is invalid
    """
    validate_app_os(app_to_create.get("os"))
    validate_app_platform(app_to_create.get("platform"))

    name = app_to_create.get("name") or ""
    org: Optional[str] = None
    display_name = name
    if separator in name:
        org, display_name = name.split(separator, 1)

    validate_app_name(display_name)

    return {
        "org": org,
        "app": {
            "display_name": display_name,
            "os": app_to_create["os"],
            "platform": app_to_create["platform"],
        },
    }


def build_renamed_app_payload(
    new_name: str, existing_app: backend.App, separator: str = DEFAULT_SEPARATOR
) -> backend.UpdatedApp:
    """
    Build the patch body renaming an app.

    When the display name matched the old name both are renamed together;
    otherwise the display name was customized and is left alone.
    """
    validate_new_app_name(new_name, separator)

    if existing_app.get("name") == existing_app.get("display_name"):
        return {"name": new_name, "display_name": new_name}
    return {"name": new_name}


def validate_new_app_name(new_name: str, separator: str = DEFAULT_SEPARATOR) -> str:
    if separator in new_name:
        raise ConflictError(
            f'The new app name "{new_name}" must be unqualified, '
            f"not having a '{separator}' character."
        )
    return validate_app_name(new_name)


# ===== RELEASE REQUESTS =====


def build_release_upload_properties(
    update_metadata: models.PackageInfo,
    release_upload_assets: models.ReleaseUploadAssets,
    deployment_name: str,
) -> backend.UploadReleaseProperties:
    release_upload: backend.UploadReleaseProperties = {
        "release_upload": release_upload_assets,
        "target_binary_version": update_metadata.get("appVersion"),
        "deployment_name": deployment_name,
        # Not supported by the management API yet.
        "no_duplicate_release_error": False,
    }

    if update_metadata.get("description"):
        release_upload["description"] = update_metadata["description"]

    if update_metadata.get("isDisabled"):
        release_upload["disabled"] = update_metadata["isDisabled"]

    if update_metadata.get("isMandatory"):
        release_upload["mandatory"] = update_metadata["isMandatory"]

    if update_metadata.get("rollout"):
        release_upload["rollout"] = update_metadata["rollout"]

    return release_upload


def build_release_modification(
    package_info: models.PackageInfo,
) -> backend.ReleaseModification:
    """
    Build a partial release update.

    Only fields set on ``package_info`` are sent, so the backend leaves the
    others untouched.
    """
    modification: backend.ReleaseModification = {}

    if package_info.get("appVersion"):
        modification["target_binary_range"] = package_info["appVersion"]

    if package_info.get("isDisabled"):
        modification["is_disabled"] = package_info["isDisabled"]

    if package_info.get("isMandatory"):
        modification["is_mandatory"] = package_info["isMandatory"]

    if package_info.get("description"):
        modification["description"] = package_info["description"]

    if package_info.get("rollout"):
        modification["rollout"] = package_info["rollout"]

    if package_info.get("label"):
        modification["label"] = package_info["label"]

    return modification


class Adapter:
    """
    Mappings that need data beyond the response being mapped.

    Args:
        request_manager: Executor used for the supporting lookups
        resolver: Name resolver; built over ``request_manager`` if omitted
    """

    MAX_WORKERS = 8

    def __init__(
        self,
        request_manager: RequestManager,
        resolver: Optional[AppNameResolver] = None,
    ):
        self._request_manager = request_manager
        self.resolver = resolver or AppNameResolver(request_manager)

    @property
    def separator(self) -> str:
        return self.resolver.separator

    def app_from_backend(self, app: backend.App) -> models.App:
        owner_name = (app.get("owner") or {}).get("name")
        with ThreadPoolExecutor(max_workers=2) as pool:
            user_future = pool.submit(self.get_user)
            deployments_future = pool.submit(
                self.get_deployment_names, owner_name, app.get("name")
            )
            user = user_future.result()
            deployment_names = deployments_future.result()

        return app_from_parts(app, user, deployment_names, self.separator)

    def apps_from_backend(self, apps: List[backend.App]) -> List[models.App]:
        """
        Map a list of apps, sorted by owner name then app name.

        The calling user and every app's deployment list are fetched
        concurrently; any failed lookup fails the whole call.
        """
        ordered = sorted(
            apps,
            key=lambda app: ((app.get("owner") or {}).get("name") or "", app.get("name") or ""),
        )
        if not ordered:
            return []

        logger.info(f"apps_from_backend: Fetching deployments for {len(ordered)} apps")
        with ThreadPoolExecutor(max_workers=self.MAX_WORKERS) as pool:
            user_future = pool.submit(self.get_user)
            deployment_futures = [
                pool.submit(
                    self.get_deployment_names,
                    (app.get("owner") or {}).get("name"),
                    app.get("name"),
                )
                for app in ordered
            ]
            user = user_future.result()
            deployment_names = [future.result() for future in deployment_futures]

        return [
            app_from_parts(app, user, names, self.separator)
            for app, names in zip(ordered, deployment_names)
        ]

    def collaborators_from_users(
        self, users: List[backend.UserProfile], app_owner: str
    ) -> models.CollaboratorMap:
        calling_user = self.get_user()
        collaborators: models.CollaboratorMap = {}
        for user in users:
            roles = user.get("permissions") or []
            is_owner = bool(user.get("name")) and user.get("name") == app_owner
            collaborators[user.get("email")] = {
                "isCurrentAccount": calling_user.get("email") == user.get("email"),
                "permission": permission_from_role(roles[0] if roles else None, is_owner),
            }
        return collaborators

    def build_app_creation_request(
        self, app_to_create: models.AppCreationRequest
    ) -> backend.AppCreationPayload:
        return build_app_creation_request(app_to_create, self.separator)

    def build_renamed_app(
        self, new_name: str, app_owner: str, old_name: str
    ) -> backend.UpdatedApp:
        """Validate ``new_name`` locally, then fetch the app to build the patch."""
        validate_new_app_name(new_name, self.separator)
        existing_app = self.get_app(app_owner, old_name)
        return build_renamed_app_payload(new_name, existing_app, self.separator)

    def resolve_access_key(self, access_key_name: str) -> backend.ApiTokensGetResponse:
        for api_token in self.get_api_tokens():
            if api_token.get("description") == access_key_name:
                return api_token

        raise NotFoundError(f'Access key "{access_key_name}" does not exist.')

    def add_standard_deployments(self, app_params: models.AppParams) -> None:
        path = (
            f"/apps/{url_encode(app_params.app_owner)}"
            f"/{url_encode(app_params.app_name)}/deployments/"
        )
        with ThreadPoolExecutor(max_workers=len(STANDARD_DEPLOYMENTS)) as pool:
            futures = [
                pool.submit(self._request_manager.post, path, {"name": name}, True)
                for name in STANDARD_DEPLOYMENTS
            ]
            for future in futures:
                future.result()

    # Supporting lookups

    def get_user(self) -> backend.UserProfile:
        return self.resolver.get_current_user()

    def get_api_tokens(self) -> List[backend.ApiTokensGetResponse]:
        return self._request_manager.get("/api_tokens").body

    def get_app(self, app_owner: str, app_name: str) -> backend.App:
        return self._request_manager.get(
            f"/apps/{url_encode(app_owner)}/{url_encode(app_name)}"
        ).body

    def get_deployments(self, app_owner: str, app_name: str) -> List[backend.Deployment]:
        return self._request_manager.get(
            f"/apps/{url_encode(app_owner)}/{url_encode(app_name)}/deployments/"
        ).body

    def get_deployment_names(self, app_owner: str, app_name: str) -> List[str]:
        return [
            deployment.get("name")
            for deployment in self.get_deployments(app_owner, app_name)
        ]
