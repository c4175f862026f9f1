"""fleetcore: node provisioning across compute providers."""

__version__ = "0.1.0"
