"""Logging subsystem for cmcontroller.

Public API::

    from cmcontroller.logging import configure_logging

    configure_logging(settings.logging)
"""

from cmcontroller.logging.setup import configure_logging

__all__ = ["configure_logging"]
