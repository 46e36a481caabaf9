"""Interactive access key setup.

The configure flow moves through these states:

    CHECK_EXISTING -> [REAUTH_CONFIRM] -> LAUNCH_APP -> PROMPT_TOKEN
        -> VALIDATE -> PERSIST -> DONE

REAUTH_CONFIRM only runs when a credential already exists and may end in
CANCELLED. Empty input at VALIDATE raises
InputError and a keyring failure at PERSIST raises StorageError; both are
fatal for the command.
"""

from __future__ import annotations

import enum
from collections.abc import Callable

from loguru import logger

from ipm_cli.credentials import (
    ACCESS_KEY_URI,
    Credential,
    CredentialStore,
    StorageError,
)

Prompt = Callable[[str], str]

_AFFIRMATIVE = frozenset({"y", "yes"})


class InputError(Exception):
    """Raised when the user submits an empty access token."""


class FlowState(enum.Enum):
    CHECK_EXISTING = "check_existing"
    REAUTH_CONFIRM = "reauth_confirm"
    LAUNCH_APP = "launch_app"
    PROMPT_TOKEN = "prompt_token"
    VALIDATE = "validate"
    PERSIST = "persist"
    DONE = "done"
    CANCELLED = "cancelled"


_TERMINAL_STATES = frozenset({FlowState.DONE, FlowState.CANCELLED})


class AuthFlow:
    """Runs the configure flow and gates commands on having a credential.

    The resolved credential is cached on the instance, so it lives exactly as
    long as the command invocation that owns this flow.

    Args:
        store: Credential store to read from and write to.
        prompt: Reads one line of user input. Defaults to ``input``.
    """

    def __init__(self, store: CredentialStore, prompt: Prompt = input) -> None:
        self._store = store
        self._prompt = prompt
        self._credential: Credential | None = None
        self._token = ""
        self.current_state = FlowState.CHECK_EXISTING

    def configure(self) -> FlowState:
        """Run the full configure flow.

        Returns:
            FlowState.DONE if a new access key was saved, FlowState.CANCELLED if
            the user kept the existing one.

        Raises:
            InputError: If the pasted token is empty.
            StorageError: If the token could not be saved.
        """
        print("Configuring Inkdrop CLI...\n")
        return self._run(FlowState.CHECK_EXISTING)

    def ensure_authenticated(self) -> Credential:
        """Return a usable credential, running setup first if there is none.

        Raises:
            InputError: If setup ran and the pasted token was empty.
            StorageError: If setup ran and the token could not be saved or
                read back.
        """
        if self._credential is not None:
            return self._credential

        credential = self._store.get_access_token()
        if credential is None:
            print("You are not authenticated yet.")
            self._run(FlowState.LAUNCH_APP)
            credential = self._store.get_access_token()
            if credential is None:
                raise StorageError("Access key was saved but could not be read back")

        self._credential = credential
        return credential

    def _run(self, start: FlowState) -> FlowState:
        handlers: dict[FlowState, Callable[[], FlowState]] = {
            FlowState.CHECK_EXISTING: self._check_existing,
            FlowState.REAUTH_CONFIRM: self._reauth_confirm,
            FlowState.LAUNCH_APP: self._launch_app,
            FlowState.PROMPT_TOKEN: self._prompt_token,
            FlowState.VALIDATE: self._validate,
            FlowState.PERSIST: self._persist,
        }
        state = start
        while state not in _TERMINAL_STATES:
            self.current_state = state
            logger.debug(f"Auth flow: {state.name}")
            state = handlers[state]()
        self.current_state = state
        return state

    def _read(self, message: str) -> str:
        # A closed stdin counts as an empty answer
        try:
            return self._prompt(message)
        except EOFError:
            return ""

    # --- States ---

    def _check_existing(self) -> FlowState:
        if self._store.get_access_token() is None:
            return FlowState.LAUNCH_APP
        print("✓ You are already authenticated.")
        return FlowState.REAUTH_CONFIRM

    def _reauth_confirm(self) -> FlowState:
        answer = self._read(
            "Do you want to reconfigure with a new access token? (y/N): "
        )
        if answer.strip().lower() in _AFFIRMATIVE:
            return FlowState.LAUNCH_APP
        print("Configuration cancelled.")
        return FlowState.CANCELLED

    def _launch_app(self) -> FlowState:
        print("Opening Inkdrop desktop app to display your access key...")
        print(ACCESS_KEY_URI)
        print(
            "If it doesn't open automatically, run the command "
            "application:display-access-key in the Inkdrop app."
        )
        self._store.open_access_key_page()
        return FlowState.PROMPT_TOKEN

    def _prompt_token(self) -> FlowState:
        self._token = self._read(
            "\nPlease paste your access token from the desktop app: "
        )
        return FlowState.VALIDATE

    def _validate(self) -> FlowState:
        if not self._token.strip():
            raise InputError("Access token cannot be empty.")
        return FlowState.PERSIST

    def _persist(self) -> FlowState:
        self._store.save_access_token(self._token)
        self._token = ""
        self._credential = None
        print("\n✓ Access token saved successfully!")
        print("You can now use the Inkdrop CLI.")
        return FlowState.DONE
