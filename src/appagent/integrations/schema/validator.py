"""
appagent.integrations.schema.validator - Manifest & Requirements Validation
=============================================================================

The schema collaborator answers two questions for the workflow:

    validate_requirements(text)          → may a workflow start with this?
    validate_manifest(manifest, schema)  → does the manifest fit its schema?

Both return a ValidationResult and never raise for invalid input; an
exception from a validator is a collaborator failure.

BasicSchemaValidator Rules:
    Requirements:
        - not blank
        - contain at least one word character
        - at most MAX_REQUIREMENTS_LENGTH characters
    Manifest:
        - is a mapping with apiVersion, kind and metadata.name
        - kind and apiVersion match the schema
        - every dotted path in schema.required_fields is present
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any

import structlog

from appagent.core.models import SchemaDescription, ValidationResult


logger = structlog.get_logger()


MAX_REQUIREMENTS_LENGTH = 4000

_WORD = re.compile(r"\w")


class SchemaValidator(ABC):
    """Contract of the schema/validation collaborator."""

    @abstractmethod
    async def validate_requirements(self, requirements: str) -> ValidationResult:
        """Check free-text requirements before a workflow starts."""

    @abstractmethod
    async def validate_manifest(
        self,
        manifest: Any,
        schema: SchemaDescription,
    ) -> ValidationResult:
        """Check a manifest against the schema of its kind."""


def _has_path(document: Mapping[str, Any], dotted_path: str) -> bool:
    node: Any = document
    for part in dotted_path.split("."):
        if not isinstance(node, Mapping) or node.get(part) in (None, "", [], {}):
            return False
        node = node[part]
    return True


class BasicSchemaValidator(SchemaValidator):
    """Structural validation without a schema-parsing grammar.

    Example:
        >>> validator = BasicSchemaValidator()
        >>> (await validator.validate_requirements("   ")).valid
        False
    """

    def __init__(self, max_requirements_length: int = MAX_REQUIREMENTS_LENGTH) -> None:
        self._max_requirements_length = max_requirements_length
        self._logger = logger.bind(component="schema_validator")

    async def validate_requirements(self, requirements: str) -> ValidationResult:
        errors: list[str] = []
        text = (requirements or "").strip()

        if not text:
            errors.append("Requirements must not be empty")
        elif not _WORD.search(text):
            errors.append("Requirements must describe the application in words")
        if len(text) > self._max_requirements_length:
            errors.append(
                f"Requirements exceed {self._max_requirements_length} characters"
            )

        return ValidationResult(valid=not errors, errors=errors)

    async def validate_manifest(
        self,
        manifest: Any,
        schema: SchemaDescription,
    ) -> ValidationResult:
        if not isinstance(manifest, Mapping):
            return ValidationResult(valid=False, errors=["Manifest must be a mapping"])

        errors: list[str] = []
        for path in ("apiVersion", "kind", "metadata.name"):
            if not _has_path(manifest, path):
                errors.append(f"Missing required field: {path}")

        kind = manifest.get("kind")
        if kind and kind != schema.kind:
            errors.append(f"Manifest kind {kind!r} does not match schema kind {schema.kind!r}")

        api_version = manifest.get("apiVersion")
        if api_version and api_version != schema.api_version:
            errors.append(
                f"apiVersion {api_version!r} does not match {schema.api_version!r} for {schema.kind}"
            )

        for path in schema.required_fields:
            if not _has_path(manifest, path):
                errors.append(f"Missing required field: {path}")

        self._logger.debug(
            "manifest_validated",
            kind=schema.kind,
            valid=not errors,
            error_count=len(errors),
        )
        return ValidationResult(valid=not errors, errors=errors)
