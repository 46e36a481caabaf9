"""Shared test fixtures for ipm_cli."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from typing import Any
from unittest import mock

import pytest
from loguru import logger

from ipm_cli.backend import (
    InstalledPackage,
    OutdatedPackage,
    PackageInfo,
    PackageManager,
    Registry,
)
from ipm_cli.config import Settings
from ipm_cli.launcher import LaunchWarning, UriLauncher
from ipm_cli.session import Session

_ENV_VARS = (
    "INKDROP_ACCESS_KEY_ID",
    "INKDROP_SECRET_ACCESS_KEY",
    "INKDROP_API_URL",
    "INKDROP_VERSION",
    "INKDROP_IPM_BACKEND",
    "INKDROP_IPM_LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the developer's own INKDROP_* variables out of tests."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def reset_logging() -> Iterator[None]:
    """Drop loguru sinks bound to streams captured during the test."""
    yield
    logger.remove()


class MemoryKeyring:
    """Dict-backed stand-in for the OS keyring."""

    def __init__(self) -> None:
        self.entries: dict[tuple[str, str], str] = {}
        self.get_calls = 0
        self.set_calls = 0

    def get_password(self, service: str, username: str) -> str | None:
        self.get_calls += 1
        return self.entries.get((service, username))

    def set_password(self, service: str, username: str, password: str) -> None:
        self.set_calls += 1
        self.entries[(service, username)] = password


@pytest.fixture
def memory_keyring() -> Iterator[MemoryKeyring]:
    backend = MemoryKeyring()
    with (
        mock.patch("keyring.get_password", side_effect=backend.get_password),
        mock.patch("keyring.set_password", side_effect=backend.set_password),
    ):
        yield backend


class RecordingLauncher(UriLauncher):
    """Launcher that records URIs instead of opening them."""

    def __init__(self, fail: bool = False) -> None:
        self.uris: list[str] = []
        self.fail = fail

    def launch(self, uri: str) -> None:
        self.uris.append(uri)
        if self.fail:
            raise LaunchWarning(f"No handler available for {uri}")


@pytest.fixture
def launcher() -> RecordingLauncher:
    return RecordingLauncher()


def make_prompt(*answers: str | BaseException) -> mock.Mock:
    """Build a prompt returning the given answers in order."""
    return mock.Mock(side_effect=list(answers))


@pytest.fixture
def log_messages() -> Iterator[list[str]]:
    """Collect loguru messages emitted during the test."""
    messages: list[str] = []
    handler_id = logger.add(
        lambda message: messages.append(message.record["message"]), level="DEBUG"
    )
    yield messages
    logger.remove(handler_id)


# --- Fake backend ---


class FakeRegistry(Registry):
    def __init__(self, packages: list[PackageInfo], error: Exception | None) -> None:
        self.packages = packages
        self.error = error
        self.calls: list[tuple[Any, ...]] = []

    async def search(
        self,
        query: str,
        sort: str | None = None,
        direction: str | None = None,
    ) -> list[PackageInfo]:
        self.calls.append(("search", query, sort, direction))
        if self.error:
            raise self.error
        return [p for p in self.packages if query in p.name]

    async def get_package_info(self, name: str) -> PackageInfo:
        self.calls.append(("get_package_info", name))
        if self.error:
            raise self.error
        for package in self.packages:
            if package.name == name:
                return package
        raise LookupError(f"Package '{name}' not found")


class FakePackageManager(PackageManager):
    """In-memory package manager recording every call."""

    def __init__(
        self,
        installed: list[InstalledPackage] | None = None,
        outdated: list[OutdatedPackage] | None = None,
        registry_packages: list[PackageInfo] | None = None,
        error: Exception | None = None,
    ) -> None:
        self.installed = list(installed or [])
        self.outdated = list(outdated or [])
        self.error = error
        self.calls: list[tuple[Any, ...]] = []
        self.closed = False
        self.registry = FakeRegistry(list(registry_packages or []), error)

    def _record(self, *call: Any) -> None:
        self.calls.append(call)
        if self.error:
            raise self.error

    async def get_installed(self) -> list[InstalledPackage]:
        self._record("get_installed")
        return self.installed

    async def get_outdated(self) -> list[OutdatedPackage]:
        self._record("get_outdated")
        return self.outdated

    async def install(self, name: str, version: str | None = None) -> None:
        self._record("install", name, version)
        self.installed.append(InstalledPackage(name=name, version=version or "1.0.0"))

    async def update(self, name: str, version: str | None = None) -> None:
        self._record("update", name, version)

    async def uninstall(self, name: str) -> bool:
        self._record("uninstall", name)
        before = len(self.installed)
        self.installed = [p for p in self.installed if p.name != name]
        return len(self.installed) < before

    async def publish(self, dryrun: bool = False, path: str | None = None) -> None:
        self._record("publish", dryrun, path)

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_ipm() -> FakePackageManager:
    return FakePackageManager(
        installed=[
            InstalledPackage("vim", "2.1.0", "Vim keybindings"),
            InstalledPackage("math", "1.4.2"),
        ],
        outdated=[OutdatedPackage("vim", "2.1.0", "2.2.0")],
        registry_packages=[
            PackageInfo(
                name="mermaid",
                latest_version="3.0.1",
                description="Draw diagrams",
                downloads=1234,
                repository="https://github.com/inkdropapp/inkdrop-mermaid",
                engine="^5.0.0",
            ),
            PackageInfo(name="mermaid-dark", latest_version="0.2.0", downloads=5),
        ],
    )


@pytest.fixture
def make_session(
    launcher: RecordingLauncher,
) -> Callable[..., Session]:
    """Build a Session with test settings, a recording launcher and a prompt."""

    def _make(prompt: Any = None, **settings: Any) -> Session:
        return Session(
            settings=Settings(**settings),
            launcher=launcher,
            prompt=prompt or make_prompt(),
        )

    return _make
