"""!
@brief chef-wrapper package root.
@details Modules under this namespace locate a packaged Chef Workstation
install, read its version manifests, and report component versions.
"""

__all__ = [
    "main",
    "detect",
    "manifests",
    "report",
    "ruby_env",
    "config",
    "constants",
    "exec_utils",
    "logging_ext",
    "version",
]
