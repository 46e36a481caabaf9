"""Package manager backend interface.

The CLI never talks to the registry or touches the packages directory itself.
All of that is done by a backend implementing PackageManager, discovered via:
1. INKDROP_IPM_BACKEND ("module:factory")
2. The first installed entry point in the ``ipm_cli.backends`` group

A factory is called as ``factory(credential=..., api_url=..., app_version=...)``
and must return a PackageManager.
"""

from __future__ import annotations

import importlib
from abc import ABC, abstractmethod
from dataclasses import dataclass
from importlib.metadata import entry_points
from typing import TYPE_CHECKING, Any

from loguru import logger

if TYPE_CHECKING:
    from ipm_cli.config import Settings
    from ipm_cli.credentials import Credential

ENTRY_POINT_GROUP = "ipm_cli.backends"

SORT_CHOICES = ("score", "majority", "recency", "newness")
DIRECTION_CHOICES = ("asc", "desc")


class BackendError(Exception):
    """Raised when no package manager backend can be loaded."""


# --- Data classes ---


@dataclass(frozen=True)
class InstalledPackage:
    """A package present in the local packages directory."""

    name: str
    version: str
    description: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> InstalledPackage:
        return cls(
            name=data.get("name", ""),
            version=data.get("version", ""),
            description=data.get("description") or "",
        )


@dataclass(frozen=True)
class OutdatedPackage:
    """An installed package with a newer release available."""

    name: str
    version: str
    latest_version: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> OutdatedPackage:
        return cls(
            name=data.get("name", ""),
            version=data.get("version", ""),
            latest_version=data.get("latestVersion", ""),
        )


@dataclass(frozen=True)
class PackageInfo:
    """Registry entry for a package."""

    name: str
    latest_version: str
    description: str = ""
    downloads: int = 0
    repository: str = ""
    engine: str = ""  # Supported Inkdrop version range

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PackageInfo:
        """Parse the registry's package JSON."""
        metadata = data.get("metadata") or {}
        engines = metadata.get("engines") or {}
        repository = data.get("repository") or ""
        if isinstance(repository, dict):
            repository = repository.get("url", "")
        return cls(
            name=data.get("name", ""),
            latest_version=(data.get("releases") or {}).get("latest", ""),
            description=metadata.get("description") or "",
            downloads=int(data.get("downloads") or 0),
            repository=repository,
            engine=engines.get("inkdrop") or "",
        )


# --- Abstract backend ---


class Registry(ABC):
    """Read access to the remote package registry."""

    @abstractmethod
    async def search(
        self,
        query: str,
        sort: str | None = None,
        direction: str | None = None,
    ) -> list[PackageInfo]:
        """Search the registry.

        Args:
            query: Free-text search query.
            sort: One of SORT_CHOICES, or None for the registry default.
            direction: One of DIRECTION_CHOICES, or None.
        """
        ...

    @abstractmethod
    async def get_package_info(self, name: str) -> PackageInfo:
        """Fetch the registry entry for a single package."""
        ...


class PackageManager(ABC):
    """Installs, updates and publishes packages for one account.

    Attributes:
        registry: Registry client bound to the same account.
    """

    registry: Registry

    @abstractmethod
    async def get_installed(self) -> list[InstalledPackage]:
        """List installed packages."""
        ...

    @abstractmethod
    async def get_outdated(self) -> list[OutdatedPackage]:
        """List installed packages that have a newer release."""
        ...

    @abstractmethod
    async def install(self, name: str, version: str | None = None) -> None:
        """Install a package, the latest release unless a version is given."""
        ...

    @abstractmethod
    async def update(self, name: str, version: str | None = None) -> None:
        """Update an installed package."""
        ...

    @abstractmethod
    async def uninstall(self, name: str) -> bool:
        """Remove a package.

        Returns:
            False if the package was not installed.
        """
        ...

    @abstractmethod
    async def publish(self, dryrun: bool = False, path: str | None = None) -> None:
        """Publish the package at path (default: current directory)."""
        ...

    async def close(self) -> None:
        """Close any open connections."""
        return None


# --- Discovery ---


def _import_factory(reference: str) -> Any:
    module_name, _, attr = reference.partition(":")
    if not module_name or not attr:
        raise BackendError(
            f"Invalid backend reference '{reference}', expected 'module:factory'"
        )
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise BackendError(f"Cannot import backend module '{module_name}': {e}") from e
    try:
        return getattr(module, attr)
    except AttributeError as e:
        raise BackendError(f"Backend module '{module_name}' has no '{attr}'") from e


def find_backend_factory(settings: Settings) -> Any:
    """Locate the backend factory configured for this environment.

    Raises:
        BackendError: If no backend is configured or installed.
    """
    if settings.ipm_backend:
        logger.debug(f"Using backend from INKDROP_IPM_BACKEND: {settings.ipm_backend}")
        return _import_factory(settings.ipm_backend)

    found = sorted(entry_points(group=ENTRY_POINT_GROUP), key=lambda ep: ep.name)
    if not found:
        raise BackendError(
            "No package manager backend installed. Install one that registers "
            f"an '{ENTRY_POINT_GROUP}' entry point, or set INKDROP_IPM_BACKEND."
        )
    if len(found) > 1:
        names = ", ".join(ep.name for ep in found)
        logger.debug(f"Multiple backends installed ({names}), using '{found[0].name}'")
    try:
        return found[0].load()
    except ImportError as e:
        raise BackendError(f"Cannot load backend '{found[0].name}': {e}") from e


def load_package_manager(settings: Settings, credential: Credential) -> PackageManager:
    """Build the package manager for an authenticated account.

    Raises:
        BackendError: If no backend can be found or imported.
    """
    factory = find_backend_factory(settings)
    return factory(
        credential=credential,
        api_url=settings.api_url,
        app_version=settings.version,
    )
