"""Constants used in the project."""

import os
from enum import Enum


class ExitCodes(Enum):
    """Exit codes for the program.

    Args:
        Enum (int): Exit codes for the program.
    """

    SUCCESS = 0
    RESOLUTION_ERROR = 1
    USAGE_ERROR = 2
    CONNECTION_ERROR = 3
    CANCELLED = 130


class Constants:  # pylint: disable=too-few-public-methods
    """General constants used in the project.
    Data holder for configuration constants; not intended to provide behavior.
    """

    DEFAULT_FEED_URL = "https://api.nuget.org/v3/index.json"
    DEFAULT_FEED_NAME = "nuget.org"
    DEFAULT_FRAMEWORK = "net10.0"
    DEFAULT_CACHE_DIR = os.path.join(os.path.expanduser("~"), ".minrt", "packages")
    LOG_FORMAT = "[%(levelname)s] %(message)s"
    REQUEST_TIMEOUT = 30  # Timeout in seconds for all HTTP requests

    HTTP_RETRY_MAX = 3
    HTTP_RETRY_BASE_DELAY_SEC = 0.3
    HTTP_USER_AGENT = "minrt/0.4"

    MAX_CONCURRENT_DOWNLOADS = 8

    # NuGet V3 resource types
    PACKAGE_BASE_ADDRESS_TYPE = "PackageBaseAddress/3.0.0"

    # Package cache layout
    METADATA_MARKER = ".nupkg.metadata"
    DOWNLOADS_DIR = ".downloads"
    PLACEHOLDER_FILE = "_._"
    MANAGED_EXTENSIONS = (".dll", ".exe", ".winmd")
    # Zip entries added by the packaging format rather than the package author
    PACKAGING_ENTRIES = ("[Content_Types].xml", "_rels/", "package/")

    LOCK_FILE_NAME = "minrt.lock.json"
    LOCK_FILE_VERSION = 1

    ENV_PACKAGES_DIR = "MINRT_PACKAGES_DIR"
    ENV_FEEDS = "MINRT_FEEDS"
    NUGET_CONFIG_NAMES = ("nuget.config", "NuGet.Config", "NuGet.config")
