"""cmcontroller: configuration for the certificate-management controller."""

__version__ = "0.12.0"
