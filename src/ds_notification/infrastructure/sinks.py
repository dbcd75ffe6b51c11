"""Notification sinks.

DbNotificationSink stores notifications in their own session so a failed
insert can never touch the escrow unit of work that produced them; push
delivery reads from that table.
"""

import json

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.ds_common.database import async_session_factory
from src.ds_common.effects import Notify
from src.ds_common.id_generator import generate_id

_INSERT_NOTIFICATION_SQL = text("""
    INSERT INTO notifications (id, user_id, type, title, body, payload)
    VALUES (:id, :user_id, :type, :title, :body, CAST(:payload AS JSONB))
""")


class DbNotificationSink:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
        self._session_factory = session_factory or async_session_factory

    async def notify(self, message: Notify) -> None:
        async with self._session_factory() as session:
            await session.execute(
                _INSERT_NOTIFICATION_SQL,
                {
                    "id": generate_id(),
                    "user_id": message.user_id,
                    "type": message.notification_type,
                    "title": message.title,
                    "body": message.body,
                    "payload": json.dumps(message.payload, default=str),
                },
            )
            await session.commit()

