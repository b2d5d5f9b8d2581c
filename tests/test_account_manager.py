"""
Tests for the AccountManager client.
"""

import logging
import zipfile
import pytest
from pathlib import Path
from unittest.mock import Mock, patch

from codepush_management import AccountManager
from codepush_management.exceptions import (
    CodePushError,
    ConflictError,
    NotFoundError,
    ServerError,
    UnauthorizedError,
)
from codepush_management.request_manager import JsonResponse


TEST_DEPLOYMENT = {"createdTime": 123, "name": "testDeployment1", "key": "testKey1"}
TEST_DEPLOYMENT_2 = {"createdTime": 123, "name": "testDeployment2", "key": "testKey2"}

CODE_PUSH_RELEASE = {
    "releasedByUserId": "testUserID",
    "target_binary_range": "testTargetBinaryRange",
    "upload_time": 123456789,
    "blob_url": "testBlobUrl",
    "size": 123456789,
}

ASSETS = {"id": "assetId", "upload_domain": "https://upload.example.com", "token": "assetToken"}


@pytest.fixture
def upload_client():
    return Mock()


@pytest.fixture
def manager(request_manager, upload_client):
    """Create a test client over a mocked request executor."""
    return AccountManager(
        access_key="dummyAccessKey",
        request_manager=request_manager,
        upload_client=upload_client,
    )


def respond(body):
    return JsonResponse(headers={}, body=body)


class TestInitialization:
    """Test client initialization."""

    def test_init_requires_access_key(self):
        """A missing token fails before any request."""
        with pytest.raises(UnauthorizedError, match="A token must be specified."):
            AccountManager(access_key="")

    def test_access_key_property(self, manager):
        assert manager.access_key == "dummyAccessKey"

    def test_default_collaborators(self):
        """The request executor is built from the connection settings."""
        manager = AccountManager(
            access_key="key",
            custom_headers={"X-Test": "1"},
            server_url="http://localhost",
        )
        assert manager._request_manager.server_url == "http://localhost"

    def test_app_permission_constants(self):
        assert AccountManager.AppPermission.OWNER == "Owner"
        assert AccountManager.AppPermission.COLLABORATOR == "Collaborator"


class TestErrorHandling:
    """Server errors reach the caller with their message and status."""

    @pytest.fixture
    def failing_manager(self):
        request_manager = Mock()
        for method in ("get", "post", "patch", "delete"):
            getattr(request_manager, method).side_effect = NotFoundError("Text")
        return AccountManager(
            access_key="dummyAccessKey", request_manager=request_manager, upload_client=Mock()
        )

    @pytest.mark.parametrize(
        "call",
        [
            lambda m: m.add_app("appName", "iOS", "Cordova"),
            lambda m: m.get_app("appName"),
            lambda m: m.rename_app("appName", "newAppName"),
            lambda m: m.remove_app("appName"),
            lambda m: m.transfer_app("appName", "org1"),
            lambda m: m.add_deployment("appName", "deploymentName"),
            lambda m: m.get_deployment("appName", "deploymentName"),
            lambda m: m.get_deployments("appName"),
            lambda m: m.rename_deployment("appName", "deploymentName", "newDeploymentName"),
            lambda m: m.remove_deployment("appName", "deploymentName"),
            lambda m: m.add_collaborator("appName", "email1"),
            lambda m: m.get_collaborators("appName"),
            lambda m: m.remove_collaborator("appName", "email1"),
            lambda m: m.patch_release("appName", "deploymentName", "label", {"description": "d"}),
            lambda m: m.promote("appName", "deploymentName", "newDeploymentName", {"description": "d"}),
            lambda m: m.rollback("appName", "deploymentName", "targetReleaseLabel"),
            lambda m: m.get_deployment_history("appName", "deploymentName"),
            lambda m: m.clear_deployment_history("appName", "deploymentName"),
            lambda m: m.get_deployment_metrics("appName", "deploymentName"),
            lambda m: m.get_access_keys(),
            lambda m: m.remove_access_key("name"),
            lambda m: m.get_account_info(),
            lambda m: m.get_apps(),
        ],
    )
    def test_errors_propagate(self, failing_manager, call):
        with pytest.raises(CodePushError) as exc_info:
            call(failing_manager)
        assert exc_info.value.message == "Text"
        assert exc_info.value.status_code == 404


class TestAuthentication:
    """Test is_authenticated."""

    def test_authenticated(self, manager, request_manager):
        assert manager.is_authenticated() is True
        request_manager.get.assert_called_once_with("/user", expect_body=False)

    def test_empty_body_is_not_authenticated(self, route_requests):
        manager = AccountManager("key", request_manager=route_requests({"/user": None}))
        assert manager.is_authenticated() is False

    def test_unauthorized_returns_false(self, route_requests):
        request_manager = route_requests({"/user": UnauthorizedError("Unauthorized")})
        manager = AccountManager("key", request_manager=request_manager)
        assert manager.is_authenticated() is False

    def test_unauthorized_raises_when_requested(self, route_requests):
        request_manager = route_requests({"/user": UnauthorizedError("Unauthorized")})
        manager = AccountManager("key", request_manager=request_manager)
        with pytest.raises(UnauthorizedError, match="Unauthorized"):
            manager.is_authenticated(throw_if_unauthorized=True)

    def test_other_errors_always_raise(self, route_requests):
        request_manager = route_requests({"/user": NotFoundError("Not Found")})
        manager = AccountManager("key", request_manager=request_manager)
        with pytest.raises(NotFoundError, match="Not Found"):
            manager.is_authenticated()


class TestAccessKeys:
    """Test access key management."""

    def test_add_access_key(self, manager, request_manager):
        request_manager.post.return_value = respond(
            {"id": "1", "api_token": "secret", "description": "ci",
             "created_at": "2020-01-01T00:00:00Z"}
        )
        access_key = manager.add_access_key("ci")

        request_manager.post.assert_called_once_with(
            "/api_tokens", {"description": "ci"}, expect_body=True
        )
        assert access_key["key"] == "secret"
        assert access_key["name"] == "ci"

    def test_add_access_key_requires_name(self, manager, request_manager):
        with pytest.raises(UnauthorizedError):
            manager.add_access_key("")
        request_manager.post.assert_not_called()

    def test_get_access_keys(self, manager, request_manager):
        request_manager.routes["/api_tokens"] = [
            {"id": "2", "description": "new", "created_at": "2021-01-01T00:00:00Z"},
            {"id": "1", "description": "old", "created_at": "2020-01-01T00:00:00Z"},
        ]
        assert [k["name"] for k in manager.get_access_keys()] == ["old", "new"]

    def test_remove_access_key(self, manager, request_manager):
        request_manager.routes["/api_tokens"] = [{"id": "2", "description": "dev"}]
        assert manager.remove_access_key("dev") is None
        request_manager.delete.assert_called_once_with("/api_tokens/2")

    def test_remove_missing_access_key(self, manager, request_manager):
        request_manager.routes["/api_tokens"] = []
        with pytest.raises(NotFoundError):
            manager.remove_access_key("dev")
        request_manager.delete.assert_not_called()

    def test_get_account_info(self, manager):
        assert manager.get_account_info() == {
            "name": "testUserName",
            "email": "testEmail",
            "linkedProviders": [],
        }


class TestApps:
    """Test app management."""

    def test_add_app(self, manager, request_manager):
        """Creating an app also provisions Staging and Production."""
        app = manager.add_app("appName", "iOS", "React-Native")

        assert app["name"] == "appName"
        first = request_manager.post.call_args_list[0]
        assert first.args[0] == "/apps"
        assert first.args[1] == {"display_name": "appName", "os": "iOS", "platform": "React-Native"}
        deployment_calls = request_manager.post.call_args_list[1:]
        assert sorted(call.args[1]["name"] for call in deployment_calls) == ["Production", "Staging"]
        assert all(
            call.args[0] == "/apps/testUserName/appName/deployments/" for call in deployment_calls
        )

    def test_add_app_to_org(self, manager, request_manager):
        manager.add_app("my-org/appName", "Android", "Cordova", manually_provision_deployments=True)

        request_manager.post.assert_called_once_with(
            "/orgs/my-org/apps",
            {"display_name": "appName", "os": "Android", "platform": "Cordova"},
            expect_body=False,
        )
        request_manager.get.assert_not_called()

    def test_add_app_invalid_platform(self, manager, request_manager):
        """Validation fails before any request."""
        with pytest.raises(ConflictError):
            manager.add_app("appName", "iOS", "Flutter")
        request_manager.post.assert_not_called()

    def test_get_app(self, manager, request_manager, test_user):
        request_manager.routes["/apps/testUserName/appName"] = {
            "name": "appName",
            "display_name": "appName",
            "owner": {**test_user, "type": "user"},
        }
        request_manager.routes["/apps/testUserName/appName/deployments/"] = [
            TEST_DEPLOYMENT,
            TEST_DEPLOYMENT_2,
        ]

        app = manager.get_app("appName")

        assert app["name"] == "appName"
        assert app["deployments"] == ["testDeployment1", "testDeployment2"]
        assert app["collaborators"]["testUserName"]["isCurrentAccount"] is True

    def test_get_apps(self, manager, request_manager, test_user):
        request_manager.routes["/apps"] = [
            {"name": "b", "display_name": "b", "owner": test_user},
            {"name": "a", "display_name": "a", "owner": test_user},
        ]
        request_manager.routes["/apps/testUserName/a/deployments/"] = []
        request_manager.routes["/apps/testUserName/b/deployments/"] = [TEST_DEPLOYMENT]

        apps = manager.get_apps()

        assert [app["name"] for app in apps] == ["a", "b"]
        assert apps[1]["deployments"] == ["testDeployment1"]

    def test_listed_name_round_trips_with_tilde_separator(self, request_manager, test_user):
        """Another owner's app is listed with the configured separator and can be fetched back."""
        other = {"id": "otherId", "name": "other"}
        app = {"name": "app", "display_name": "app", "owner": other}
        request_manager.routes["/apps"] = [app]
        request_manager.routes["/apps/other/app"] = app
        request_manager.routes["/apps/other/app/deployments/"] = [TEST_DEPLOYMENT]
        manager = AccountManager(
            access_key="dummyAccessKey",
            app_name_separator="~~",
            request_manager=request_manager,
        )

        listed_name = manager.get_apps()[0]["name"]
        fetched = manager.get_app(listed_name)

        assert listed_name == "other~~app"
        assert fetched["name"] == "other~~app"
        assert fetched["deployments"] == ["testDeployment1"]
        requested = [call.args[0] for call in request_manager.get.call_args_list]
        assert "/apps/other/app" in requested

    def test_remove_app(self, manager, request_manager):
        assert manager.remove_app("owner/appName") is None
        request_manager.delete.assert_called_once_with("/apps/owner/appName")

    def test_rename_app(self, manager, request_manager):
        request_manager.routes["/apps/testUserName/appName"] = {
            "name": "appName",
            "display_name": "appName",
        }
        assert manager.rename_app("appName", "newAppName") is None
        request_manager.patch.assert_called_once_with(
            "/apps/testUserName/appName",
            {"name": "newAppName", "display_name": "newAppName"},
        )

    def test_rename_app_to_qualified_name(self, manager, request_manager):
        with pytest.raises(ConflictError):
            manager.rename_app("owner/appName", "other/newName")
        request_manager.patch.assert_not_called()

    def test_transfer_app(self, manager, request_manager):
        manager.transfer_app("appName", "org1")
        request_manager.post.assert_called_once_with(
            "/apps/testUserName/appName/transfer/org1", None, expect_body=False
        )


class TestCollaborators:
    """Test collaborator management."""

    def test_get_collaborators(self, manager, request_manager, test_user):
        request_manager.routes["/apps/testUserName/appName/users"] = [
            test_user,
            {**test_user, "email": "testEmail2", "permissions": ["developer"]},
        ]
        collaborators = manager.get_collaborators("appName")

        assert collaborators["testEmail"]["permission"] == "Owner"
        assert collaborators["testEmail2"]["permission"] == "Collaborator"

    def test_get_no_collaborators(self, manager, request_manager):
        request_manager.routes["/apps/testUserName/appName/users"] = []
        assert manager.get_collaborators("appName") == {}

    def test_add_collaborator(self, manager, request_manager):
        manager.add_collaborator("owner/appName", "a@example.com")
        request_manager.post.assert_called_once_with(
            "/apps/owner/appName/invitations",
            {"user_email": "a@example.com"},
            expect_body=False,
        )

    def test_remove_collaborator_escapes_email(self, manager, request_manager):
        manager.remove_collaborator("owner/appName", "a@example.com")
        request_manager.delete.assert_called_once_with(
            "/apps/owner/appName/invitations/a%40example.com"
        )


class TestDeployments:
    """Test deployment management."""

    def test_add_deployment(self, manager, request_manager):
        request_manager.post.return_value = respond({**TEST_DEPLOYMENT, "latest_release": None})

        deployment = manager.add_deployment("owner/appName", "testDeployment1")

        request_manager.post.assert_called_once_with(
            "/apps/owner/appName/deployments/", {"name": "testDeployment1"}, expect_body=True
        )
        assert deployment["key"] == "testKey1"
        assert deployment["package"] is None

    def test_get_deployments(self, manager, request_manager):
        request_manager.routes["/apps/owner/appName/deployments/"] = [
            TEST_DEPLOYMENT_2,
            TEST_DEPLOYMENT,
        ]
        deployments = manager.get_deployments("owner/appName")
        assert [d["name"] for d in deployments] == ["testDeployment1", "testDeployment2"]

    def test_get_deployment(self, manager, request_manager):
        request_manager.routes["/apps/owner/appName/deployments/Staging"] = {
            **TEST_DEPLOYMENT,
            "latest_release": {**CODE_PUSH_RELEASE, "label": "v1"},
        }
        deployment = manager.get_deployment("owner/appName", "Staging")
        assert deployment["package"]["label"] == "v1"
        assert deployment["package"]["rollout"] == 100

    def test_rename_deployment(self, manager, request_manager):
        manager.rename_deployment("owner/appName", "Staging", "QA")
        request_manager.patch.assert_called_once_with(
            "/apps/owner/appName/deployments/Staging", {"name": "QA"}
        )

    def test_remove_deployment(self, manager, request_manager):
        assert manager.remove_deployment("owner/appName", "Staging") is None
        request_manager.delete.assert_called_once_with("/apps/owner/appName/deployments/Staging")

    def test_clear_deployment_history(self, manager, request_manager):
        assert manager.clear_deployment_history("owner/appName", "Staging") is None
        request_manager.delete.assert_called_once_with(
            "/apps/owner/appName/deployments/Staging/releases"
        )

    def test_get_deployment_history_empty(self, manager, request_manager):
        request_manager.routes["/apps/owner/appName/deployments/Staging/releases"] = []
        assert manager.get_deployment_history("owner/appName", "Staging") == []

    def test_get_deployment_history(self, manager, request_manager):
        request_manager.routes["/apps/owner/appName/deployments/Staging/releases"] = [
            {**CODE_PUSH_RELEASE, "label": "v1"},
            {**CODE_PUSH_RELEASE, "label": "v2"},
        ]
        history = manager.get_deployment_history("owner/appName", "Staging")
        assert [p["label"] for p in history] == ["v1", "v2"]

    def test_get_deployment_metrics(self, manager, request_manager):
        request_manager.routes["/apps/owner/appName/deployments/Staging/metrics"] = [
            {"label": "v1", "active": 3, "downloaded": 4, "failed": 0, "installed": 4}
        ]
        metrics = manager.get_deployment_metrics("owner/appName", "Staging")
        assert metrics == {"v1": {"active": 3, "downloaded": 4, "failed": 0, "installed": 4}}


class TestReleaseManagement:
    """Test patch, promote and rollback."""

    def test_patch_release(self, manager, request_manager):
        result = manager.patch_release(
            "owner/appName", "Staging", "v1", {"description": "newDescription"}
        )
        assert result is None
        request_manager.patch.assert_called_once_with(
            "/apps/owner/appName/deployments/Staging/releases/v1",
            {"description": "newDescription"},
            expect_body=False,
        )

    def test_promote(self, manager, request_manager):
        request_manager.post.return_value = respond(
            {**CODE_PUSH_RELEASE, "description": "newDescription"}
        )
        package = manager.promote(
            "owner/appName", "Staging", "Production", {"description": "newDescription"}
        )
        request_manager.post.assert_called_once_with(
            "/apps/owner/appName/deployments/Staging/promote_release/Production",
            {"description": "newDescription"},
            expect_body=True,
        )
        assert package["description"] == "newDescription"

    def test_rollback_to_label(self, manager, request_manager):
        assert manager.rollback("owner/appName", "Staging", "v1") is None
        request_manager.post.assert_called_once_with(
            "/apps/owner/appName/deployments/Staging/rollback_release",
            {"label": "v1"},
            expect_body=False,
        )

    def test_rollback_previous(self, manager, request_manager):
        manager.rollback("owner/appName", "Staging")
        assert request_manager.post.call_args.args[1] == {}


class TestRelease:
    """Test the release upload pipeline."""

    @pytest.fixture
    def temp_dir(self, tmp_path):
        directory = tmp_path / "tmp"
        directory.mkdir()
        with patch(
            "codepush_management.package_file.tempfile.gettempdir",
            return_value=str(directory),
        ):
            yield directory

    @pytest.fixture
    def bundle_dir(self, tmp_path):
        bundle = tmp_path / "bundle"
        (bundle / "assets").mkdir(parents=True)
        (bundle / "index.bundle").write_text("console.log('hi');")
        (bundle / "assets" / "logo.png").write_bytes(b"\x89PNG")
        return bundle

    @staticmethod
    def route_posts(request_manager, commit_error=None):
        def post(path, body=None, expect_body=False):
            if path.endswith("/uploads"):
                return respond(dict(ASSETS))
            if path.endswith("/releases"):
                if commit_error:
                    raise commit_error
                return respond({**CODE_PUSH_RELEASE, "label": "v5", "description": body.get("description")})
            return respond(None)

        request_manager.post.side_effect = post

    def test_release_directory(self, manager, request_manager, upload_client, temp_dir, bundle_dir):
        """A directory is zipped, uploaded, committed and cleaned up."""
        self.route_posts(request_manager)
        uploaded = {}

        def upload(**kwargs):
            path = Path(kwargs["file_path"])
            uploaded["path"] = path
            uploaded["is_zip"] = zipfile.is_zipfile(path)
            with zipfile.ZipFile(path) as archive:
                uploaded["names"] = archive.namelist()
            kwargs["on_progress"](100.0)

        upload_client.upload.side_effect = upload
        progress = []

        package = manager.release(
            "owner/appName",
            "Staging",
            str(bundle_dir),
            "1.0.0",
            {"description": "fix"},
            upload_progress_callback=progress.append,
        )

        assert package["label"] == "v5"
        assert uploaded["is_zip"]
        assert uploaded["path"].parent == temp_dir
        assert len(uploaded["path"].stem) == 15
        assert uploaded["names"] == ["bundle/assets/logo.png", "bundle/index.bundle"]
        assert progress == [100.0]
        assert list(temp_dir.iterdir()) == []

        release_call = request_manager.post.call_args_list[-1]
        assert release_call.args[0] == "/apps/owner/appName/deployments/Staging/releases"
        assert release_call.args[1] == {
            "release_upload": ASSETS,
            "target_binary_version": "1.0.0",
            "deployment_name": "Staging",
            "no_duplicate_release_error": False,
            "description": "fix",
        }

    def test_release_cleans_up_when_commit_fails(
        self, manager, request_manager, upload_client, temp_dir, bundle_dir
    ):
        """The temporary archive is removed even if the commit step fails."""
        self.route_posts(request_manager, commit_error=ServerError("boom"))

        with pytest.raises(ServerError, match="boom"):
            manager.release("owner/appName", "Staging", str(bundle_dir), "1.0.0")

        upload_client.upload.assert_called_once()
        assert list(temp_dir.iterdir()) == []

    def test_release_not_committed_when_upload_fails(
        self, manager, request_manager, upload_client, temp_dir, bundle_dir
    ):
        self.route_posts(request_manager)
        upload_client.upload.side_effect = CodePushError("upload failed", 500)

        with pytest.raises(CodePushError, match="upload failed"):
            manager.release("owner/appName", "Staging", str(bundle_dir), "1.0.0")

        posted = [call.args[0] for call in request_manager.post.call_args_list]
        assert not any(path.endswith("/releases") for path in posted)
        assert list(temp_dir.iterdir()) == []

    def test_release_single_file(self, manager, request_manager, upload_client, temp_dir, tmp_path):
        """A single file is uploaded as-is and left in place."""
        self.route_posts(request_manager)
        bundle = tmp_path / "app.bundle"
        bundle.write_text("bundle")

        manager.release("owner/appName", "Staging", str(bundle), "^1.0.0")

        assert upload_client.upload.call_args.kwargs["file_path"] == bundle
        assert upload_client.upload.call_args.kwargs["asset_id"] == "assetId"
        assert bundle.exists()
        assert list(temp_dir.iterdir()) == []

    @pytest.mark.parametrize("use_directory,source", [(True, "temporary archive"), (False, "file")])
    def test_release_logs_package_source(
        self, manager, request_manager, temp_dir, bundle_dir, caplog, use_directory, source
    ):
        self.route_posts(request_manager)
        path = bundle_dir if use_directory else bundle_dir / "index.bundle"

        with caplog.at_level(logging.INFO, logger="codepush_management.account_manager"):
            manager.release("owner/appName", "Staging", str(path), "1.0.0")

        assert f"release: Uploading {source} " in caplog.text

    def test_release_does_not_mutate_metadata(self, manager, request_manager, tmp_path):
        self.route_posts(request_manager)
        bundle = tmp_path / "app.bundle"
        bundle.write_text("bundle")
        metadata = {"description": "fix"}

        manager.release("owner/appName", "Staging", str(bundle), "1.0.0", metadata)

        assert metadata == {"description": "fix"}


class TestDeprecatedMethods:
    """Deprecated methods fail without touching the network."""

    @pytest.mark.parametrize(
        "call",
        [
            lambda m: m.get_access_key("name"),
            lambda m: m.get_sessions(),
            lambda m: m.patch_access_key("old", "new"),
            lambda m: m.remove_session("machine"),
        ],
    )
    def test_deprecated(self, manager, request_manager, call):
        with pytest.raises(NotFoundError, match="Method is deprecated") as exc_info:
            call(manager)
        assert exc_info.value.status_code == 404
        request_manager.get.assert_not_called()
        request_manager.post.assert_not_called()
