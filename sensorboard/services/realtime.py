import asyncio
import logging
from typing import Iterable, List, Optional
from sensorboard.schemas.realtime import Binding, ChangeEvent

logger = logging.getLogger(__name__)

_CLOSED = object()


class Subscription:
    """
    Canal de eventos de una sesión. Se consume con `async for`.
    Solo recibe eventos publicados mientras está suscrito (no hay historial).
    """

    def __init__(self, feed: "ChangeFeed", bindings: List[Binding], maxsize: int = 0):
        self._feed = feed
        self.bindings = bindings
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self.closed = False

    def wants(self, change: ChangeEvent) -> bool:
        return any(binding.matches(change) for binding in self.bindings)

    def _deliver(self, item) -> None:
        try:
            self._queue.put_nowait(item)
        except asyncio.QueueFull:
            logger.warning(f"⚠️ Cola de suscripción llena, evento descartado: {getattr(item, 'table', item)}")

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._feed._remove(self)
        # Despierta al consumidor para que salga del bucle
        try:
            self._queue.put_nowait(_CLOSED)
        except asyncio.QueueFull:
            self._queue.get_nowait()
            self._queue.put_nowait(_CLOSED)

    def __aiter__(self):
        return self

    async def __anext__(self) -> ChangeEvent:
        if self.closed and self._queue.empty():
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item


class ChangeFeed:
    """
    Notificador de cambios en proceso: los servicios publican eventos de fila
    (INSERT/UPDATE) después del commit y cada suscripción los recibe en su cola.
    Publicar nunca bloquea al publicador.
    """

    def __init__(self, queue_size: int = 0):
        self.queue_size = queue_size
        self._subscriptions: List[Subscription] = []

    def subscribe(self, bindings: Iterable[Binding]) -> Subscription:
        subscription = Subscription(self, list(bindings), maxsize=self.queue_size)
        self._subscriptions = self._subscriptions + [subscription]
        logger.info(f"📡 Nueva suscripción ({len(self._subscriptions)} activas)")
        return subscription

    def _remove(self, subscription: Subscription) -> None:
        self._subscriptions = [s for s in self._subscriptions if s is not subscription]
        logger.info(f"🔌 Suscripción liberada ({len(self._subscriptions)} activas)")

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def publish(self, change: ChangeEvent) -> int:
        delivered = 0
        for subscription in self._subscriptions:
            if subscription.wants(change):
                subscription._deliver(change)
                delivered += 1
        return delivered

    def publish_row(self, event: str, table: str, row: dict, schema: Optional[str] = "public") -> int:
        return self.publish(ChangeEvent(event=event, schema=schema, table=table, new=row))

    def close(self) -> None:
        for subscription in list(self._subscriptions):
            subscription.close()
