from .config import (
    ConfigProvider,
    ConfigMapConfigProvider,
    StaticConfigProvider,
    ConfigResolver,
)
from .installation import InstallationJob, ReconcileOutcome

__all__ = [
    "ConfigProvider",
    "ConfigMapConfigProvider",
    "StaticConfigProvider",
    "ConfigResolver",
    "InstallationJob",
    "ReconcileOutcome",
]
