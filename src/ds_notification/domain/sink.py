"""NotificationSink — fire-and-forget delivery of user notifications."""

from typing import Protocol

from src.ds_common.effects import Notify


class NotificationSinkProtocol(Protocol):
    async def notify(self, message: Notify) -> None: ...
