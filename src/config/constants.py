"""Constants for the configuration module."""

# Log component names
COMPONENT_CONFIG = "config"
COMPONENT_CLI = "cli"
COMPONENT_PROXY = "proxy"

# Supported URL schemes
VALID_URL_SCHEMES = ("http://", "https://")
