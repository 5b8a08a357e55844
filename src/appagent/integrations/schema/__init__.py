"""
appagent.integrations.schema - Schema Validation Collaborator
===============================================================
"""

from appagent.integrations.schema.validator import (
    MAX_REQUIREMENTS_LENGTH,
    BasicSchemaValidator,
    SchemaValidator,
)

__all__ = [
    "BasicSchemaValidator",
    "MAX_REQUIREMENTS_LENGTH",
    "SchemaValidator",
]
