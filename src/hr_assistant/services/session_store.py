"""In-memory persistence for chat sessions, turns and context summaries."""

import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..models.conversation import ConversationTurn, Session

logger = logging.getLogger(__name__)


class SessionStore:
    """Stores chat sessions and their turns.

    Turns are append-only. The stored context summary only ever moves forward:
    an update whose coverage is lower than the stored one is ignored.
    """

    def __init__(self, max_sessions: int = 100):
        self.sessions: Dict[str, Session] = {}
        self.max_sessions = max_sessions

    def create_session(
        self,
        title: str = "",
        metadata: Optional[Dict[str, Any]] = None,
        session_id: Optional[str] = None,
    ) -> Session:
        """Create a new chat session.

        Args:
            title: Optional display title
            metadata: Optional metadata for the session
            session_id: Explicit ID; generated when omitted

        Returns:
            The new session
        """
        # Clean up old sessions if at capacity
        if len(self.sessions) >= self.max_sessions:
            self._cleanup_oldest_session()

        session_id = session_id or f"sess_{uuid.uuid4().hex[:12]}"
        session = Session(session_id=session_id, title=title, metadata=metadata or {})
        self.sessions[session_id] = session
        logger.info(f"Created session {session_id}")
        return session

    def get_session(self, session_id: str) -> Optional[Session]:
        """Get a session by ID."""
        return self.sessions.get(session_id)

    def require_session(self, session_id: str) -> Session:
        """Get a session by ID.

        Raises:
            ValueError: If the session does not exist
        """
        session = self.sessions.get(session_id)
        if not session:
            raise ValueError(f"Session {session_id} not found")
        return session

    def get_or_create_session(self, session_id: str) -> Session:
        return self.sessions.get(session_id) or self.create_session(session_id=session_id)

    def append_turn(self, session_id: str, role: str, content: str) -> ConversationTurn:
        """Persist one turn at the end of a session."""
        session = self.require_session(session_id)
        turn = ConversationTurn(session_id=session_id, role=role, content=content)
        session.turns.append(turn)
        session.updated_at = turn.created_at
        if not session.title and role == "user":
            session.title = content[:50]
        return turn

    def get_turns(self, session_id: str, limit: Optional[int] = None) -> List[ConversationTurn]:
        """Get a session's turns in creation order, optionally only the last ``limit``."""
        turns = self.require_session(session_id).turns
        if limit:
            turns = turns[-limit:]
        return list(turns)

    def update_summary(
        self, session_id: str, summary: str, coverage: int, merged: bool = False
    ) -> bool:
        """Store a new rolling summary covering the first ``coverage`` turns.

        Args:
            session_id: The session ID
            summary: Summary text
            coverage: Number of leading turns the summary describes
            merged: Whether the summary was merged into the previous one

        Returns:
            True if stored, False if it would move the summary backwards.
        """
        session = self.require_session(session_id)
        if coverage < session.summary_coverage or coverage > len(session.turns):
            logger.debug(
                f"Ignoring summary for {session_id}: coverage {coverage}, "
                f"stored {session.summary_coverage}, turns {len(session.turns)}"
            )
            return False

        session.context_summary = summary
        session.summary_coverage = coverage
        session.summary_merges = session.summary_merges + 1 if merged else 0
        logger.info(f"Session {session_id}: summary now covers {coverage} turns")
        return True

    def list_sessions(self) -> List[Dict[str, Any]]:
        """List all sessions, most recently active first."""
        return [
            {
                "session_id": s.session_id,
                "title": s.title,
                "turns": len(s.turns),
                "created_at": s.created_at.isoformat(),
                "updated_at": s.updated_at.isoformat(),
                "preview": s.turns[0].content[:50] if s.turns else "Empty",
            }
            for s in sorted(
                self.sessions.values(),
                key=lambda x: x.updated_at,
                reverse=True,
            )
        ]

    def delete_session(self, session_id: str) -> bool:
        if self.sessions.pop(session_id, None) is None:
            return False
        logger.info(f"Deleted session {session_id}")
        return True

    def _cleanup_oldest_session(self) -> None:
        """Remove the least recently active session to make room for new ones."""
        if not self.sessions:
            return
        oldest_id = min(
            self.sessions.keys(),
            key=lambda k: self.sessions[k].updated_at,
        )
        logger.warning(f"Cleaning up oldest session {oldest_id} to make room")
        del self.sessions[oldest_id]

    def get_stats(self) -> Dict[str, Any]:
        """Get session store statistics."""
        total_turns = sum(len(s.turns) for s in self.sessions.values())
        return {
            "active_sessions": len(self.sessions),
            "max_sessions": self.max_sessions,
            "total_turns": total_turns,
            "summarized_sessions": sum(
                1 for s in self.sessions.values() if s.context_summary
            ),
            "checked_at": datetime.now().isoformat(),
        }
