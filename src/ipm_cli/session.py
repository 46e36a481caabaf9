"""State for a single CLI invocation."""

from __future__ import annotations

from ipm_cli.auth import AuthFlow, Prompt
from ipm_cli.backend import PackageManager, load_package_manager
from ipm_cli.config import Settings, load_settings
from ipm_cli.credentials import Credential, CredentialStore
from ipm_cli.launcher import UriLauncher


class Session:
    """Holds settings, the auth flow, and a lazily built package manager.

    Args:
        settings: Settings to use. Read from the environment when omitted.
        launcher: Launcher for the access key page.
        prompt: Line reader for interactive questions.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        launcher: UriLauncher | None = None,
        prompt: Prompt = input,
    ) -> None:
        self.settings = settings or load_settings()
        self.store = CredentialStore(self.settings, launcher=launcher)
        self.auth = AuthFlow(self.store, prompt=prompt)
        self._package_manager: PackageManager | None = None

    def ensure_authenticated(self) -> Credential:
        return self.auth.ensure_authenticated()

    def package_manager(self) -> PackageManager:
        """Return the package manager, authenticating and building it on first use."""
        if self._package_manager is None:
            credential = self.ensure_authenticated()
            self._package_manager = load_package_manager(self.settings, credential)
        return self._package_manager

    async def close(self) -> None:
        if self._package_manager is not None:
            await self._package_manager.close()
