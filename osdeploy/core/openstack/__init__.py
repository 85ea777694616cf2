"""
OpenStack client package initialization.
"""

from .client import OpenStackClient
from .deployer import ResourceOrchestrator

__all__ = ["OpenStackClient", "ResourceOrchestrator"]
