"""ipm - Inkdrop Plugin Manager command-line interface.

Manages Inkdrop plugins and themes from the terminal. The access key is stored
in the OS keyring (macOS Keychain, Windows Credential Locker, or Linux Secret
Service) and package operations are delegated to an installed backend.

Example:
    from ipm_cli import Session

    session = Session()
    credential = session.ensure_authenticated()
"""

__version__ = "0.1.0"

from ipm_cli.credentials import Credential, CredentialStore  # noqa: E402
from ipm_cli.session import Session  # noqa: E402

__all__ = ["Credential", "CredentialStore", "Session", "__version__"]
