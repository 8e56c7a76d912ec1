"""
Flow Control Hub - Centralized routing of run lifecycle events.

This module decouples event production (the run orchestrator) from event
consumption (the tracer cache, SSE responses, ad-hoc callbacks). Every
subscriber receives every event of every run, in emission order.

Key Features:
- Single publish point for all run events
- Per-subscriber ordering identical to emission order
- Failing subscribers are logged and counted, never propagated
- Named subscriptions that can be removed when a client disconnects
"""

import inspect
import logging
import threading
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from graph_engine.events import RunEvent

logger = logging.getLogger(__name__)

EventCallback = Callable[[RunEvent], None]


# ============================================================================
# Subscriptions
# ============================================================================

@dataclass
class Subscription:
    """A named event sink, optionally limited to a single run."""
    name: str
    callback: EventCallback
    run_id: Optional[str] = None

    def accepts(self, event: RunEvent) -> bool:
        return self.run_id is None or self.run_id == event.run_id


# ============================================================================
# Flow Control Hub
# ============================================================================

class FlowControlHub:
    """
    Centralized hub that fans run events out to subscribers.

    Publishing is synchronous: ``publish`` returns only after every
    subscriber has seen the event, which is what keeps per-run ordering
    intact for every sink.

    Example Usage:
        hub = FlowControlHub()
        hub.subscribe("tracer", tracer.on_event)
        hub.subscribe("sse", queue.put, run_id=run.id)

        hub.publish(event)
    """

    def __init__(self):
        self._subscriptions: Dict[str, Subscription] = {}
        self._lock = threading.Lock()
        self._stats = {
            'total_published': 0,
            'callback_invocations': 0,
            'errors': 0
        }

        logger.info("Flow Control Hub initialized")

    # ========================================================================
    # Subscription Management
    # ========================================================================

    def subscribe(self, name: str, callback: EventCallback, run_id: Optional[str] = None) -> Subscription:
        """
        Register a named subscriber.

        Args:
            name: Subscriber identifier; re-using a name replaces the old sink
            callback: Callable that accepts a RunEvent
            run_id: Only deliver events of this run when set

        Returns:
            The created Subscription
        """
        if inspect.iscoroutinefunction(callback):
            raise TypeError("Event subscribers must be synchronous callables")

        subscription = Subscription(name=name, callback=callback, run_id=run_id)
        with self._lock:
            self._subscriptions[name] = subscription
        logger.debug("Registered event subscriber: %s", name)
        return subscription

    def unsubscribe(self, name: str) -> bool:
        with self._lock:
            removed = self._subscriptions.pop(name, None)
        if removed:
            logger.debug("Removed event subscriber: %s", name)
        return removed is not None

    def subscribers(self) -> List[str]:
        with self._lock:
            return list(self._subscriptions)

    # ========================================================================
    # Publishing
    # ========================================================================

    def publish(self, event: RunEvent) -> int:
        """
        Deliver one event to every matching subscriber.

        Args:
            event: The run event to deliver

        Returns:
            Number of subscribers that accepted the event without error
        """
        with self._lock:
            targets = [s for s in self._subscriptions.values() if s.accepts(event)]

        delivered = 0
        for subscription in targets:
            if self._deliver(subscription.name, subscription.callback, event):
                delivered += 1

        with self._lock:
            self._stats['total_published'] += 1
        return delivered

    def _deliver(self, name: str, callback: EventCallback, event: RunEvent) -> bool:
        try:
            callback(event)
        except Exception as e:
            logger.exception("Event subscriber %s failed on %s for run %s: %s",
                             name, event.type.value, event.run_id, e)
            with self._lock:
                self._stats['errors'] += 1
            return False

        with self._lock:
            self._stats['callback_invocations'] += 1
        return True

    # ========================================================================
    # Helper Methods
    # ========================================================================

    def get_stats(self) -> Dict[str, int]:
        """Get publishing statistics."""
        with self._lock:
            return self._stats.copy()

    def reset_stats(self):
        """Reset publishing statistics."""
        with self._lock:
            self._stats = {
                'total_published': 0,
                'callback_invocations': 0,
                'errors': 0
            }
        logger.info("Flow control statistics reset")
