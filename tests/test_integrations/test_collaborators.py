"""
Tests for appagent.integrations.discovery and appagent.integrations.schema
============================================================================

These tests verify the in-process reference collaborators:
    - StaticDiscoveryClient: catalog listing, explain, extra kinds,
      failure simulation
    - BasicSchemaValidator: requirements checks and structural manifest
      validation against a SchemaDescription
"""

import pytest

from appagent.core.exceptions import ClusterConnectionError, ResourceNotFoundError
from appagent.core.models import ResourceDescriptor, SchemaDescription
from appagent.integrations.discovery import DiscoveryClient, StaticDiscoveryClient, default_catalog
from appagent.integrations.schema import BasicSchemaValidator, SchemaValidator


def _deployment_manifest(**overrides) -> dict:
    manifest = {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": {"name": "my-app"},
        "spec": {
            "selector": {"matchLabels": {"app": "my-app"}},
            "template": {"metadata": {"labels": {"app": "my-app"}}},
        },
    }
    manifest.update(overrides)
    return manifest


# =============================================================================
# Test: StaticDiscoveryClient
# =============================================================================
class TestStaticDiscoveryClient:
    """Tests for the catalog-backed discovery client."""

    def test_is_discovery_client(self, discovery_client) -> None:
        assert isinstance(discovery_client, DiscoveryClient)

    async def test_connect(self, discovery_client) -> None:
        assert discovery_client.is_connected is False
        await discovery_client.connect()
        assert discovery_client.is_connected is True

    async def test_default_catalog_order(self, discovery_client) -> None:
        kinds = [r.kind for r in await discovery_client.discover_resources()]
        assert kinds == ["Deployment", "StatefulSet", "Service", "ConfigMap", "Ingress"]
        assert len(default_catalog()) == 5

    async def test_explain_known_kind(self, discovery_client) -> None:
        schema = await discovery_client.explain_resource("Deployment")
        assert schema.api_version == "apps/v1"
        assert schema.required_fields == ["spec.selector", "spec.template"]

    async def test_explain_unknown_kind(self, discovery_client) -> None:
        with pytest.raises(ResourceNotFoundError, match="Resource kind not found: Widget"):
            await discovery_client.explain_resource("Widget")

    async def test_add_resource(self, discovery_client) -> None:
        discovery_client.add_resource(
            ResourceDescriptor(kind="CronJob", api_version="batch/v1", group="batch"),
            SchemaDescription(kind="CronJob", api_version="batch/v1", required_fields=["spec.schedule"]),
        )

        kinds = [r.kind for r in await discovery_client.discover_resources()]
        assert kinds[-1] == "CronJob"
        assert (await discovery_client.explain_resource("CronJob")).required_fields == [
            "spec.schedule"
        ]

    async def test_custom_catalog(self) -> None:
        client = StaticDiscoveryClient(
            catalog=[
                (
                    ResourceDescriptor(kind="Service", api_version="v1"),
                    SchemaDescription(kind="Service", api_version="v1"),
                )
            ]
        )
        assert [r.kind for r in await client.discover_resources()] == ["Service"]

    async def test_failure_simulation(self, discovery_client) -> None:
        discovery_client.set_should_fail(True, "connection refused")

        with pytest.raises(ClusterConnectionError, match="connection refused"):
            await discovery_client.connect()
        with pytest.raises(ClusterConnectionError):
            await discovery_client.discover_resources()
        assert discovery_client.is_connected is False


# =============================================================================
# Test: BasicSchemaValidator - Requirements
# =============================================================================
class TestValidateRequirements:
    """Tests for requirements validation."""

    def test_is_schema_validator(self, schema_validator) -> None:
        assert isinstance(schema_validator, SchemaValidator)

    async def test_valid_requirements(self, schema_validator) -> None:
        result = await schema_validator.validate_requirements("web server with database")
        assert result.valid is True
        assert result.errors == []

    @pytest.mark.parametrize("requirements", ["", "  \n\t"])
    async def test_empty_requirements(self, schema_validator, requirements) -> None:
        result = await schema_validator.validate_requirements(requirements)
        assert result.errors == ["Requirements must not be empty"]

    async def test_requirements_without_words(self, schema_validator) -> None:
        result = await schema_validator.validate_requirements("?!?")
        assert result.valid is False

    async def test_requirements_too_long(self) -> None:
        validator = BasicSchemaValidator(max_requirements_length=10)
        result = await validator.validate_requirements("a web server with a database")
        assert result.errors == ["Requirements exceed 10 characters"]


# =============================================================================
# Test: BasicSchemaValidator - Manifests
# =============================================================================
class TestValidateManifest:
    """Tests for structural manifest validation."""

    async def test_valid_manifest(self, schema_validator, discovery_client) -> None:
        schema = await discovery_client.explain_resource("Deployment")
        result = await schema_validator.validate_manifest(_deployment_manifest(), schema)
        assert result.valid is True

    async def test_missing_name_and_selector(self, schema_validator, discovery_client) -> None:
        schema = await discovery_client.explain_resource("Deployment")
        manifest = _deployment_manifest(
            metadata={},
            spec={"template": {"metadata": {"labels": {"app": "x"}}}},
        )

        result = await schema_validator.validate_manifest(manifest, schema)

        assert result.errors == [
            "Missing required field: metadata.name",
            "Missing required field: spec.selector",
        ]

    async def test_kind_mismatch(self, schema_validator, discovery_client) -> None:
        schema = await discovery_client.explain_resource("Service")
        result = await schema_validator.validate_manifest(_deployment_manifest(), schema)
        assert "Manifest kind 'Deployment' does not match schema kind 'Service'" in result.errors

    async def test_api_version_mismatch(self, schema_validator, discovery_client) -> None:
        schema = await discovery_client.explain_resource("Deployment")
        result = await schema_validator.validate_manifest(
            _deployment_manifest(apiVersion="extensions/v1beta1"), schema
        )
        assert result.valid is False
        assert result.errors[0].startswith("apiVersion 'extensions/v1beta1' does not match")

    async def test_non_mapping_manifest(self, schema_validator, discovery_client) -> None:
        schema = await discovery_client.explain_resource("Deployment")
        result = await schema_validator.validate_manifest(["not", "a", "manifest"], schema)
        assert result.errors == ["Manifest must be a mapping"]
