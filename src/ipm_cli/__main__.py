"""Entry point for ``python -m ipm_cli``."""

from ipm_cli.cli import main

main()
