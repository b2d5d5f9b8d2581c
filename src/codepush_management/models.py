"""
Client-facing data structures for codepush-management-client.

These shapes are the stable contract returned to callers. They mirror the
legacy CodePush management API and must not change when the backend does;
backend wire shapes live in :mod:`codepush_management.backend_models`.
"""

from typing import Dict, List, NamedTuple, Optional, TypedDict


class Account(TypedDict):
    name: str
    email: str
    linkedProviders: List[str]


class AccessKey(TypedDict, total=False):
    name: str
    createdTime: int
    expires: int
    key: str


class CollaboratorProperties(TypedDict):
    isCurrentAccount: bool
    permission: str


CollaboratorMap = Dict[str, CollaboratorProperties]


class App(TypedDict):
    name: str
    collaborators: CollaboratorMap
    deployments: List[str]
    os: Optional[str]
    platform: Optional[str]


class AppCreationRequest(TypedDict, total=False):
    name: str
    os: str
    platform: str
    manuallyProvisionDeployments: bool


class BlobInfo(TypedDict):
    size: int
    url: str


class Package(TypedDict, total=False):
    appVersion: str
    blobUrl: str
    size: int
    uploadTime: int
    isDisabled: bool
    isMandatory: bool
    label: str
    description: str
    packageHash: str
    rollout: int
    releasedBy: str
    releasedByUserId: str
    releaseMethod: str
    diffPackageMap: Dict[str, BlobInfo]
    originalLabel: str
    originalDeployment: str


class PackageInfo(TypedDict, total=False):
    appVersion: str
    description: str
    isDisabled: bool
    isMandatory: bool
    label: str
    rollout: int


class Deployment(TypedDict, total=False):
    name: str
    key: str
    package: Optional[Package]
    id: str
    createdTime: int


class UpdateMetrics(TypedDict):
    active: int
    downloaded: int
    failed: int
    installed: int


DeploymentMetrics = Dict[str, UpdateMetrics]


class ReleaseUploadAssets(TypedDict):
    id: str
    upload_domain: str
    token: str


class AppParams(NamedTuple):
    """Backend-addressable owner and name of an app."""

    app_owner: str
    app_name: str
