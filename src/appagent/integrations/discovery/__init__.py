"""
appagent.integrations.discovery - Cluster Discovery Collaborator
==================================================================
"""

from appagent.integrations.discovery.client import (
    DiscoveryClient,
    StaticDiscoveryClient,
    default_catalog,
)

__all__ = [
    "DiscoveryClient",
    "StaticDiscoveryClient",
    "default_catalog",
]
