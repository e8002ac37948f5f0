"""Interface implemented by remote providers that execute tasks asynchronously."""

from __future__ import annotations

import abc
from typing import Mapping

from .models import StatusSnapshot, TaskRequest, TaskStatus


class TaskProvider(abc.ABC):
    """Abstract provider consumed by :class:`AsyncTaskPoller`.

    Implementations translate their transport failures into
    :class:`SubmissionError` (creation) and :class:`ProviderUnavailableError`
    (status checks).
    """

    #: Extra provider status codes understood on top of the base vocabulary.
    status_aliases: Mapping[str, TaskStatus] = {}

    @abc.abstractmethod
    async def create_task(self, request: TaskRequest) -> str:
        """Create the remote task and return its identifier."""

    @abc.abstractmethod
    async def fetch_status(self, task_id: str) -> StatusSnapshot:
        """Perform a single status check."""
