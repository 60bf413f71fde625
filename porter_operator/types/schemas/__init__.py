from .installation_spec import (
    InstallationSchema,
    InstallationMetadataSchema,
    InstallationSpecSchema,
    InstallationStatusSchema,
    LocalObjectReferenceSchema,
)

__all__ = [
    "InstallationSchema",
    "InstallationMetadataSchema",
    "InstallationSpecSchema",
    "InstallationStatusSchema",
    "LocalObjectReferenceSchema",
]
