"""Mapping from provider status vocabularies to :class:`TaskStatus`."""

from __future__ import annotations

import logging
from typing import Mapping, Optional

from .models import TaskStatus

logger = logging.getLogger(__name__)

PROVIDER_STATUS_CODES: Mapping[str, TaskStatus] = {
    "PENDING": TaskStatus.PENDING,
    "RUNNING": TaskStatus.RUNNING,
    "SUCCEEDED": TaskStatus.SUCCEEDED,
    "FAILED": TaskStatus.FAILED,
}


def map_provider_status(
    code: Optional[str],
    *,
    aliases: Optional[Mapping[str, TaskStatus]] = None,
    log: Optional[logging.Logger] = None,
) -> Optional[TaskStatus]:
    """Translate a provider status code.

    Matching is case-insensitive. ``aliases`` extends the base vocabulary with
    provider specific codes and may only map onto provider-reported states.
    Returns ``None`` for unrecognised codes, which callers treat as
    non-terminal; a warning is logged in that case.
    """

    normalised = (code or "").strip().upper()
    status = PROVIDER_STATUS_CODES.get(normalised)
    if status is None and aliases:
        status = {key.upper(): value for key, value in aliases.items()}.get(normalised)
    if status is None:
        (log or logger).warning("Unrecognised provider status", extra={"status_code": code})
        return None
    if status not in PROVIDER_STATUS_CODES.values():
        raise ValueError(f"Provider status {code!r} cannot map to client-side state {status.value}")
    return status
