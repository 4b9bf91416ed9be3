"""Version info for eth2client."""

import os
from importlib.metadata import PackageNotFoundError, version

PACKAGE_NAME = "eth2client"


def get_version() -> str:
    """Installed package version, or ``ETH2CLIENT_VERSION`` when running from a checkout."""
    try:
        return version(PACKAGE_NAME)
    except PackageNotFoundError:
        return os.environ.get("ETH2CLIENT_VERSION", "0.1.0")


def user_agent() -> str:
    return f"{PACKAGE_NAME}/{get_version()}"
