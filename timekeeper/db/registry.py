"""
One-time model registration.

Importing the model modules populates ``Base.metadata``; configuring the
mappers resolves the string-named relationships between them. Both happen
once, at process start-up, instead of as side effects scattered across
modules.
"""

from __future__ import annotations

import logging

from sqlalchemy.orm import configure_mappers

from timekeeper.db.base import Base

logger = logging.getLogger(__name__)

_configured = False


def configure_models() -> type[Base]:
    """Import every model module and configure mappers. Safe to call twice."""
    global _configured
    if _configured:
        return Base

    from timekeeper.models import attendance, audit, leave, user  # noqa: F401

    configure_mappers()
    _configured = True
    logger.debug("Registered tables: %s", ", ".join(sorted(Base.metadata.tables)))
    return Base
