"""!
@brief Static data for chef-wrapper.
@details Product and distributor names, the component lookup table, manifest
filenames, and exit codes live here so the detection, manifest, and report
modules share a single source of truth.
"""
from __future__ import annotations

from typing import Tuple

WORKSTATION_PRODUCT = "Chef Workstation"
DISTRIBUTOR_NAME = "Chef Software Inc."

CLIENT_PRODUCT = "Chef Infra Client"
CLIENT_GEM = "chef"
INSPEC_PRODUCT = "Chef InSpec"
INSPEC_GEM = "inspec"
CLI_PRODUCT = "Chef CLI"
CLI_GEM = "chef-cli"
HAB_PRODUCT = "Chef Habitat"
HAB_SOFTWARE_NAME = "hab"

BUILD_VERSION_KEY = "build_version"
"""!
@brief Manifest key holding the overall Workstation build version.
"""

COMPONENT_TABLE: Tuple[Tuple[str, str], ...] = (
    (CLIENT_PRODUCT, CLIENT_GEM),
    (INSPEC_PRODUCT, INSPEC_GEM),
    (CLI_PRODUCT, CLI_GEM),
    (HAB_PRODUCT, HAB_SOFTWARE_NAME),
    ("Test Kitchen", "test-kitchen"),
    ("Cookstyle", "cookstyle"),
)
"""!
@brief Display name to manifest key pairs, in report order.
"""

GEM_MANIFEST_FILENAME = "gem-version-manifest.json"
VERSION_MANIFEST_FILENAME = "version-manifest.json"

RUBY_ENV_RELATIVE_PATH = (".chef", "ruby-env.json")
"""!
@brief Location of the cached ruby environment document below the home directory.
"""

DEFAULT_RUBY_PATH = "/opt/chef-workstation/embedded/bin/ruby"
"""!
@brief Absolute path of the Ruby interpreter shipped with the package.
"""

UNKNOWN_VERSION = "unknown"

DEFAULT_COMMAND_TIMEOUT = 30.0

EXIT_OK = 0
EXIT_CONFIG_ERROR = 1
EXIT_FATAL = 4

NOT_PACKAGED_MESSAGE = (
    f"{WORKSTATION_PRODUCT} has not been installed via the platform-specific package "
    f"provided by {DISTRIBUTOR_NAME} Version information is not available."
)
