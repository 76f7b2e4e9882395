"""plannercal - multi-feed iCalendar aggregation server.

Imports are kept light so the package can be inspected without pulling in
the server runtime.
"""

__version__ = "0.1.0"

from typing import Optional


def run_server(args: Optional[object] = None) -> None:
    """Build configuration and start the plannercal server.

    Configuration comes from ``.env`` defaults and ``PLANNERCAL_*`` environment
    variables; command line arguments (``--port``, ``--host``, ``--timezone``,
    ``--feeds``) override both.

    Args:
        args: Optional argparse namespace
    """
    import logging

    from .api.server import start_server
    from .core.config_manager import ConfigManager

    logger = logging.getLogger(__name__)

    cfg = ConfigManager().load()
    if args is not None:
        cfg.apply_overrides(
            port=getattr(args, "port", None),
            host=getattr(args, "host", None),
            timezone=getattr(args, "timezone", None),
            feeds_path=getattr(args, "feeds", None),
        )

    logger.debug(
        "Resolved configuration: host=%s port=%s timezone=%s feeds_path=%s",
        cfg.host,
        cfg.port,
        cfg.timezone,
        cfg.feeds_path,
    )
    start_server(cfg)
