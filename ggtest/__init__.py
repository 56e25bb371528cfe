"""Resource lifecycle registry and device registration for Greengrass end-to-end tests."""

__version__ = "1.0.0"
