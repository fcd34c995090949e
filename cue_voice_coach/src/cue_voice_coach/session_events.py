"""
Session Events

Phase transitions, fallbacks and errors emitted by the session controller,
by value. Sinks are optional; a session runs the same with none attached.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Set

logger = logging.getLogger(__name__)

SESSION_STARTED = "session_started"
SESSION_ENDED = "session_ended"
PHASE_TRANSITION = "phase_transition"
FALLBACK_USED = "fallback_used"
CONTENT_POLICY_FAILURE = "content_policy_failure"
PERMISSION_DENIED = "permission_denied"
SPEECH_ERROR = "speech_error"
HELP_PROMPT = "help_prompt"


@dataclass(frozen=True)
class SessionEvent:
    kind: str
    session_id: str
    data: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)

    def to_row(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "kind": self.kind,
            "data": self.data,
            "created_at": self.timestamp.isoformat(),
        }


class EventSink:
    """Receives session events. ``record`` must not block the event loop."""

    def record(self, event: SessionEvent) -> None:
        raise NotImplementedError


class InMemoryEventSink(EventSink):
    def __init__(self):
        self.events: List[SessionEvent] = []

    def record(self, event: SessionEvent) -> None:
        self.events.append(event)

    def kinds(self) -> List[str]:
        return [event.kind for event in self.events]


class SupabaseEventSink(EventSink):
    """
    Writes events to a Supabase table.

    Inserts run in a worker thread (the Supabase client is synchronous).
    Failed inserts are logged and dropped.
    """

    def __init__(self, client, table: str = "voice_session_events"):
        self.client = client
        self.table = table
        self._pending: Set[asyncio.Task] = set()

    def record(self, event: SessionEvent) -> None:
        row = event.to_row()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._insert(row)
            return
        task = loop.create_task(asyncio.to_thread(self._insert, row))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    def _insert(self, row: Dict[str, Any]) -> None:
        try:
            self.client.table(self.table).insert(row).execute()
        except Exception as e:
            logger.warning(f"⚠️ [Events] Failed to store {row.get('kind')} event: {e}")

    async def flush(self) -> None:
        """Wait for inserts already scheduled."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


def build_event_sink(client=None, table: Optional[str] = None) -> Optional[EventSink]:
    """Supabase sink when a client is available, otherwise None."""
    if client is None:
        return None
    return SupabaseEventSink(client, table=table or "voice_session_events")
