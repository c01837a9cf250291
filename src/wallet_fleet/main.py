"""Application entry point for the wallet-fleet CLI."""

from __future__ import annotations

import sys

from wallet_fleet.cli import main as cli_main


def main() -> None:
    """Run the CLI and exit with its status."""
    sys.exit(cli_main())


if __name__ == "__main__":
    main()
