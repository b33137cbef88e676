"""
Realtime change channel over Postgres LISTEN/NOTIFY.

A trigger on `reports` (see sql/reports_changes.sql) publishes
`{"event": "INSERT" | "UPDATE" | "DELETE", "row": {...}}` on the channel.
There is no replay: a listener only sees what is published while it is
connected.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional

import psycopg2
from psycopg2.extensions import ISOLATION_LEVEL_AUTOCOMMIT

logger = logging.getLogger(__name__)

SUBSCRIBED = "SUBSCRIBED"
CHANNEL_ERROR = "CHANNEL_ERROR"
CLOSED = "CLOSED"


@dataclass(frozen=True)
class ChangeEvent:
    event: str
    row: dict = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: str) -> Optional["ChangeEvent"]:
        try:
            data = json.loads(payload)
        except ValueError:
            logger.warning("Ignoring malformed change payload: %r", payload[:200])
            return None

        if not isinstance(data, dict) or not isinstance(data.get("row"), dict):
            logger.warning("Ignoring change payload without a row: %r", payload[:200])
            return None

        return cls(event=str(data.get("event", "")).upper(), row=data["row"])


EventHandler = Callable[[ChangeEvent], Awaitable[None]]
StatusHandler = Callable[[str], Awaitable[None]]


class PostgresChangeChannel:
    def __init__(self, dsn: str, channel: str = "reports_changes", reconnect_delay: float = 2.0):
        # psycopg2 takes plain libpq URIs, without the SQLAlchemy driver suffix
        self.dsn = dsn.replace("postgresql+psycopg2://", "postgresql://")
        self.channel = channel
        self.reconnect_delay = reconnect_delay

        self.conn = None
        self.loop: Optional[asyncio.AbstractEventLoop] = None
        self.on_event: Optional[EventHandler] = None
        self.on_status: Optional[StatusHandler] = None

        self._closing = False
        self._reconnect_task: Optional[asyncio.Task] = None
        self._tasks: set[asyncio.Task] = set()

    def _connect(self):
        conn = psycopg2.connect(self.dsn)
        conn.set_isolation_level(ISOLATION_LEVEL_AUTOCOMMIT)
        with conn.cursor() as cursor:
            cursor.execute(f'LISTEN "{self.channel}"')
        return conn

    def _spawn(self, coro):
        task = self.loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _emit_status(self, status: str):
        logger.info("Channel %s: %s", self.channel, status)
        if self.on_status:
            self._spawn(self.on_status(status))

    async def _open(self):
        self.conn = await asyncio.to_thread(self._connect)
        self.loop.add_reader(self.conn.fileno(), self._on_readable)
        self._emit_status(SUBSCRIBED)

    def _on_readable(self):
        try:
            self.conn.poll()
        except psycopg2.Error as e:
            logger.error("Channel %s lost its connection: %s", self.channel, e)
            self._drop_connection()
            self._emit_status(CHANNEL_ERROR)
            if not self._closing:
                self._reconnect_task = self._spawn(self._reconnect())
            return

        while self.conn.notifies:
            notify = self.conn.notifies.pop(0)
            event = ChangeEvent.from_payload(notify.payload)
            if event and self.on_event:
                self._spawn(self.on_event(event))

    def _drop_connection(self):
        if self.conn is None:
            return

        try:
            self.loop.remove_reader(self.conn.fileno())
        except (ValueError, psycopg2.Error):
            pass

        try:
            self.conn.close()
        except psycopg2.Error as e:
            logger.debug("Closing channel connection: %s", e)

        self.conn = None

    async def _reconnect(self):
        while not self._closing:
            await asyncio.sleep(self.reconnect_delay)
            try:
                await self._open()
                return
            except psycopg2.Error as e:
                logger.warning("Reconnect of channel %s failed: %s", self.channel, e)

    async def subscribe(self, on_event: EventHandler, on_status: Optional[StatusHandler] = None):
        self.loop = asyncio.get_running_loop()
        self.on_event = on_event
        self.on_status = on_status
        self._closing = False
        await self._open()

    async def unsubscribe(self):
        self._closing = True

        if self._reconnect_task and not self._reconnect_task.done():
            self._reconnect_task.cancel()

        self._drop_connection()
        self._emit_status(CLOSED)
