"""Registry client and component installer.

- wpsyde.json install state (ProjectConfig)
- Async registry HTTP client with HTML-for-JSON detection and integrity checks
- Install/remove state machine
"""

from wpsyde.client.config import (
    CONFIG_FILENAME,
    ClientConfig,
    InstalledComponent,
    Project,
    ProjectConfig,
    init_config,
    load_config,
    load_project,
    save_config,
)
from wpsyde.client.installer import (
    BatchReport,
    Installer,
    InstallOutcome,
    InstallState,
    RemoveOutcome,
)
from wpsyde.client.registry_client import (
    HealthReport,
    RegistryClient,
    looks_like_html,
    verify_archive,
)

__all__ = [
    "CONFIG_FILENAME",
    "BatchReport",
    "ClientConfig",
    "HealthReport",
    "InstallOutcome",
    "InstallState",
    "InstalledComponent",
    "Installer",
    "Project",
    "ProjectConfig",
    "RegistryClient",
    "RemoveOutcome",
    "init_config",
    "load_config",
    "load_project",
    "looks_like_html",
    "save_config",
    "verify_archive",
]
