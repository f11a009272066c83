"""
In-process realtime broker for row-insert events

Subscribers get every row published on a table after they subscribed.
Delivery goes through the subscriber's own event loop, so publishers may
run on any loop or thread.
"""
import asyncio
import logging
from collections import defaultdict
from typing import Any, Dict, Set

logger = logging.getLogger(__name__)


class Subscription:
    """Async iterator over rows published on one table"""
    
    def __init__(self, broker: "RealtimeBroker", table: str, maxsize: int):
        self.broker = broker
        self.table = table
        self.loop = asyncio.get_running_loop()
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self.closed = False
    
    def deliver(self, row: Dict[str, Any]) -> None:
        if self.closed:
            return
        try:
            self.queue.put_nowait(row)
        except asyncio.QueueFull:
            logger.warning(f"Realtime subscriber on {self.table} is not keeping up; event dropped")
    
    def close(self) -> None:
        self.closed = True
        self.broker._unsubscribe(self)
    
    def __aiter__(self):
        return self
    
    async def __anext__(self) -> Dict[str, Any]:
        if self.closed:
            raise StopAsyncIteration
        return await self.queue.get()
    
    async def __aenter__(self):
        return self
    
    async def __aexit__(self, exc_type, exc, tb):
        self.close()


class RealtimeBroker:
    """Table name -> live subscriptions"""
    
    def __init__(self, queue_size: int = 100):
        self.queue_size = queue_size
        self._subscribers: Dict[str, Set[Subscription]] = defaultdict(set)
    
    def subscribe(self, table: str) -> Subscription:
        """Must be called from within a running event loop"""
        subscription = Subscription(self, table, self.queue_size)
        self._subscribers[table].add(subscription)
        logger.debug(f"Realtime subscribe: {table} ({len(self._subscribers[table])} listeners)")
        return subscription
    
    def publish(self, table: str, row: Dict[str, Any]) -> int:
        """
        Fan a new row out to every subscriber of `table`
        
        Returns:
            Number of subscribers notified
        """
        subscribers = list(self._subscribers.get(table, ()))
        for subscription in subscribers:
            try:
                subscription.loop.call_soon_threadsafe(subscription.deliver, row)
            except RuntimeError:
                # Subscriber's loop already closed
                self._unsubscribe(subscription)
        return len(subscribers)
    
    def subscriber_count(self, table: str) -> int:
        return len(self._subscribers.get(table, ()))
    
    def _unsubscribe(self, subscription: Subscription) -> None:
        listeners = self._subscribers.get(subscription.table)
        if listeners is not None:
            listeners.discard(subscription)
            if not listeners:
                del self._subscribers[subscription.table]
