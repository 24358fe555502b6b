"""Unit tests for the discovery metadata and bootstrap OAuth clients."""

import json
import pytest
from kubernetes_asyncio.client import ApiException

from authop.resources.base import BaseResource
from authop.resources.metadata import (
    CREATE_ONLY_ANNOTATION,
    METADATA_KEY,
    get_metadata,
    handle_auth_config,
    prepare_metadata_config_map,
)
from authop.resources.oauthclients import ensure_bootstrapped_oauth_clients


@pytest.fixture
def res(core_v1_api, apps_v1_api, custom_objects_api):
    return BaseResource(core_v1_api, apps_v1_api, custom_objects_api)


def auth_config(spec=None, status=None):
    return {
        "metadata": {"name": "cluster", "resourceVersion": "3"},
        "spec": spec or {},
        "status": status or {},
    }


class TestMetadata:
    """Tests for the published discovery document."""

    def test_endpoints_derive_from_host(self):
        metadata = get_metadata("oauth-openshift.apps.example.com")

        assert metadata["issuer"] == "https://oauth-openshift.apps.example.com"
        assert metadata["token_endpoint"] == "https://oauth-openshift.apps.example.com/oauth/token"
        assert "S256" in metadata["code_challenge_methods_supported"]

    def test_config_map_in_managed_namespace(self):
        cm = prepare_metadata_config_map("oauth-openshift.apps.example.com")

        assert cm.metadata.namespace == "openshift-config-managed"
        assert json.loads(cm.data[METADATA_KEY]) == get_metadata("oauth-openshift.apps.example.com")


class TestHandleAuthConfig:
    """Tests for handle_auth_config."""

    @pytest.mark.asyncio
    async def test_creates_missing_config(self, res, custom_objects_api):
        custom_objects_api.get_cluster_custom_object.side_effect = ApiException(status=404)
        custom_objects_api.create_cluster_custom_object.return_value = auth_config()
        custom_objects_api.replace_cluster_custom_object_status.return_value = auth_config(
            status={"integratedOAuthMetadata": {"name": "oauth-openshift"}}
        )

        config = await handle_auth_config(res)

        created = custom_objects_api.create_cluster_custom_object.await_args.args[3]
        assert created["metadata"]["annotations"] == {CREATE_ONLY_ANNOTATION: "true"}
        assert config.status.integrated_oauth_metadata_name == "oauth-openshift"

    @pytest.mark.asyncio
    async def test_points_status_at_published_metadata(self, res, custom_objects_api):
        custom_objects_api.get_cluster_custom_object.return_value = auth_config(
            spec={"type": "IntegratedOAuth"}
        )
        custom_objects_api.replace_cluster_custom_object_status.return_value = auth_config(
            spec={"type": "IntegratedOAuth"},
            status={"integratedOAuthMetadata": {"name": "oauth-openshift"}},
        )

        await handle_auth_config(res)

        body = custom_objects_api.replace_cluster_custom_object_status.await_args.args[4]
        assert body["status"]["integratedOAuthMetadata"] == {"name": "oauth-openshift"}

    @pytest.mark.asyncio
    async def test_status_already_set(self, res, custom_objects_api):
        custom_objects_api.get_cluster_custom_object.return_value = auth_config(
            status={"integratedOAuthMetadata": {"name": "oauth-openshift"}}
        )

        config = await handle_auth_config(res)

        assert config.integrated
        custom_objects_api.replace_cluster_custom_object_status.assert_not_called()

    @pytest.mark.asyncio
    async def test_non_integrated_type_left_alone(self, res, custom_objects_api):
        custom_objects_api.get_cluster_custom_object.return_value = auth_config(
            spec={"type": "None"}
        )

        config = await handle_auth_config(res)

        assert not config.integrated
        custom_objects_api.replace_cluster_custom_object_status.assert_not_called()


class TestBootstrapOAuthClients:
    """Tests for ensure_bootstrapped_oauth_clients."""

    @pytest.mark.asyncio
    async def test_creates_only_missing_clients(self, res, custom_objects_api):
        async def get(group, version, plural, name):
            if name == "openshift-browser-client":
                return {"metadata": {"name": name}}
            raise ApiException(status=404)

        custom_objects_api.get_cluster_custom_object.side_effect = get

        await ensure_bootstrapped_oauth_clients(res, "https://oauth-openshift.apps.example.com")

        custom_objects_api.create_cluster_custom_object.assert_awaited_once()
        body = custom_objects_api.create_cluster_custom_object.await_args.args[3]
        assert body["metadata"]["name"] == "openshift-challenging-client"
        assert body["respondWithChallenges"] is True
        assert body["redirectURIs"] == [
            "https://oauth-openshift.apps.example.com/oauth/token/implicit"
        ]

    @pytest.mark.asyncio
    async def test_create_race_is_tolerated(self, res, custom_objects_api):
        custom_objects_api.get_cluster_custom_object.side_effect = ApiException(status=404)
        custom_objects_api.create_cluster_custom_object.side_effect = ApiException(status=409)

        await ensure_bootstrapped_oauth_clients(res, "https://oauth-openshift.apps.example.com")

        assert custom_objects_api.create_cluster_custom_object.await_count == 2
