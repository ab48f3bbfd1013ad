"""
cutplan.logging - Logger shared by every cutplan module.

Library code only emits records; the CLI decides whether they are shown.
"""

from __future__ import annotations

import logging

logger = logging.getLogger("cutplan")


def configure_logging(verbose: bool = False) -> None:
    """Send cutplan records to stderr.

    Args:
        verbose: Show DEBUG records (batch commits, preview rejections,
            pipeline fallbacks, ripple and undo refusals); otherwise WARNING
    """
    logging.basicConfig(format="%(levelname)s: %(message)s")
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
