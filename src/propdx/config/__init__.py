"""Configuration: settings, constants and the check catalog."""
