from __future__ import annotations

from typing import Optional
from uuid import UUID

from sqlalchemy import select, update

from webstack.db.enums import ChatRoleEnum, ChatSessionStatusEnum
from webstack.db.models import AiChatMessage, AiChatSession, AiHandoffRequest, utcnow
from webstack.db.repositories.base import Repository


class AiChatRepository(Repository):
    def get_session(self, session_id: str) -> Optional[AiChatSession]:
        stmt = select(AiChatSession).where(AiChatSession.session_id == session_id)
        return self.session.scalars(stmt).first()

    def create_session(
        self,
        *,
        session_id: str,
        visitor_name: Optional[str] = None,
        visitor_email: Optional[str] = None,
        current_page: Optional[str] = None,
    ) -> AiChatSession:
        return self.save(
            AiChatSession(
                session_id=session_id,
                visitor_name=visitor_name,
                visitor_email=visitor_email,
                current_page=current_page,
            )
        )

    def get_or_create_session(self, *, session_id: str, current_page: Optional[str] = None) -> AiChatSession:
        chat = self.get_session(session_id)
        if chat:
            return chat
        return self.create_session(session_id=session_id, current_page=current_page)

    def set_status(
        self,
        *,
        chat_session_id: UUID,
        status: ChatSessionStatusEnum,
        calendly_link: Optional[str] = None,
    ) -> None:
        values = {"status": status, "last_activity_at": utcnow()}
        if calendly_link:
            values["calendly_link"] = calendly_link
        self.session.execute(update(AiChatSession).where(AiChatSession.id == chat_session_id).values(**values))
        self.session.commit()

    def touch(self, chat_session_id: UUID) -> None:
        self.session.execute(
            update(AiChatSession).where(AiChatSession.id == chat_session_id).values(last_activity_at=utcnow())
        )
        self.session.commit()

    def recent_messages(self, chat_session_id: UUID, *, limit: int = 20) -> list[AiChatMessage]:
        stmt = (
            select(AiChatMessage)
            .where(AiChatMessage.chat_session_id == chat_session_id)
            .order_by(AiChatMessage.created_at.desc())
            .limit(limit)
        )
        rows = list(self.session.scalars(stmt).all())
        rows.reverse()
        return rows

    def add_message(self, *, chat_session_id: UUID, role: ChatRoleEnum, content: str) -> AiChatMessage:
        return self.save(AiChatMessage(chat_session_id=chat_session_id, role=role, content=content))

    def create_handoff(self, *, chat_session_id: UUID, reason: Optional[str] = None) -> AiHandoffRequest:
        return self.save(AiHandoffRequest(chat_session_id=chat_session_id, reason=reason))
