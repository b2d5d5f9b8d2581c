"""
Backend wire structures.

The backend representation drifts between releases (renamed fields, optional
objects, different defaults). Only :mod:`codepush_management.adapter` should
read or build these shapes.
"""

from typing import Dict, List, Optional, TypedDict

# 'manager' | 'developer' | 'viewer' | 'tester'
AppMemberPermission = str


class UserProfile(TypedDict, total=False):
    id: str
    avatar_url: str
    can_change_password: bool
    display_name: str
    email: str
    name: str
    permissions: List[AppMemberPermission]


class ApiTokensGetResponse(TypedDict, total=False):
    id: str
    description: str
    created_at: str


class ApiToken(ApiTokensGetResponse, total=False):
    api_token: str


class AppOwner(TypedDict, total=False):
    id: str
    avatar_url: str
    display_name: str
    email: str
    name: str
    type: str


class App(TypedDict, total=False):
    name: str
    display_name: str
    description: str
    os: str
    platform: str
    origin: str
    release_type: str
    owner: AppOwner


class UpdatedApp(TypedDict, total=False):
    name: str
    display_name: str


class AppCreationPayload(TypedDict):
    org: Optional[str]
    app: App


class BlobInfo(TypedDict):
    size: int
    url: str


class CodePushRelease(TypedDict, total=False):
    target_binary_range: str
    blob_url: str
    size: int
    upload_time: int
    is_disabled: bool
    is_mandatory: bool
    label: str
    description: str
    package_hash: str
    rollout: Optional[int]
    diff_package_map: Dict[str, BlobInfo]
    released_by: str
    releasedByUserId: str
    release_method: str
    original_label: str
    original_deployment: str


class Deployment(TypedDict, total=False):
    id: str
    name: str
    key: str
    createdTime: int
    latest_release: Optional[CodePushRelease]


class DeploymentMetrics(TypedDict):
    label: str
    active: int
    downloaded: int
    failed: int
    installed: int


class ReleaseModification(TypedDict, total=False):
    target_binary_range: str
    is_disabled: bool
    is_mandatory: bool
    description: str
    rollout: int
    label: str


class ReleaseUpload(TypedDict):
    id: str
    upload_domain: str
    token: str


class UploadReleaseProperties(TypedDict, total=False):
    release_upload: ReleaseUpload
    target_binary_version: str
    deployment_name: str
    no_duplicate_release_error: bool
    description: str
    disabled: bool
    mandatory: bool
    rollout: int
