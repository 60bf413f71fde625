from .installation_spec import (
    Installation,
    InstallationMetadata,
    InstallationSpec,
    InstallationStatus,
    LocalObjectReference,
)
from .installation_resources import InstallationResources

__all__ = [
    "Installation",
    "InstallationMetadata",
    "InstallationSpec",
    "InstallationStatus",
    "LocalObjectReference",
    "InstallationResources",
]
