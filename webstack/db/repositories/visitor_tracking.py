from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import func, select, update

from webstack.db.models import (
    FormSubmission,
    Lead,
    PageView,
    ToolInteraction,
    VisitorSession,
    utcnow,
)
from webstack.db.repositories.base import Repository


class VisitorSessionsRepository(Repository):
    def init_session(
        self,
        *,
        session_id: str,
        first_page: Optional[str] = None,
        referrer: Optional[str] = None,
        user_agent: Optional[str] = None,
        ip_hash: Optional[str] = None,
        domain: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> None:
        now = utcnow()
        stmt = (
            self.upsert_insert(VisitorSession.__table__)
            .values(
                session_id=session_id,
                first_page=first_page,
                referrer=referrer,
                user_agent=user_agent,
                ip_hash=ip_hash,
                domain=domain,
                user_id=user_id,
                started_at=now,
                last_activity_at=now,
            )
            .on_conflict_do_nothing(index_elements=["session_id"])
        )
        self.session.execute(stmt)
        # An existing row keeps its first_page/referrer; only the owner is attached.
        if user_id:
            self.session.execute(
                update(VisitorSession)
                .where(VisitorSession.session_id == session_id)
                .values(user_id=user_id)
            )
        self.session.commit()

    def touch(
        self,
        *,
        session_id: str,
        user_id: Optional[str] = None,
        first_page: Optional[str] = None,
        referrer: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> bool:
        """Bump last activity. Returns False when the session row had to be recreated."""
        values: dict[str, Any] = {"last_activity_at": utcnow()}
        if user_id:
            values["user_id"] = user_id
        result = self.session.execute(
            update(VisitorSession).where(VisitorSession.session_id == session_id).values(**values)
        )
        self.session.commit()
        if result.rowcount:
            return True
        self.init_session(
            session_id=session_id,
            first_page=first_page,
            referrer=referrer,
            user_agent=user_agent,
            user_id=user_id,
        )
        return False

    def list_active_since(
        self,
        *,
        since: datetime,
        domain: Optional[str] = None,
        limit: int = 8,
    ) -> list[VisitorSession]:
        stmt = select(VisitorSession).where(VisitorSession.last_activity_at >= since)
        if domain:
            stmt = stmt.where(VisitorSession.domain == domain)
        stmt = stmt.order_by(VisitorSession.last_activity_at.desc()).limit(limit)
        return list(self.session.scalars(stmt).all())

    def count_started_since(self, *, domain: str, since: datetime) -> int:
        stmt = (
            select(func.count())
            .select_from(VisitorSession)
            .where(VisitorSession.domain == domain, VisitorSession.started_at >= since)
        )
        return int(self.session.scalar(stmt) or 0)


class PageViewsRepository(Repository):
    def create(
        self,
        *,
        session_id: str,
        page_path: str,
        page_title: Optional[str] = None,
        time_on_page: Optional[int] = None,
        scroll_depth: Optional[int] = None,
    ) -> PageView:
        return self.save(
            PageView(
                session_id=session_id,
                page_path=page_path,
                page_title=page_title,
                time_on_page=time_on_page or 0,
                scroll_depth=scroll_depth or 0,
            )
        )

    def top_pages_since(self, *, domain: str, since: datetime, limit: int = 5) -> list[tuple[str, int]]:
        """Most viewed paths across the domain's sessions."""
        views = func.count(PageView.id).label("views")
        stmt = (
            select(PageView.page_path, views)
            .join(VisitorSession, VisitorSession.session_id == PageView.session_id)
            .where(VisitorSession.domain == domain, PageView.created_at >= since)
            .group_by(PageView.page_path)
            .order_by(views.desc(), PageView.page_path.asc())
            .limit(limit)
        )
        return [(path, int(count)) for path, count in self.session.execute(stmt).all()]


class ToolInteractionsRepository(Repository):
    def create(
        self,
        *,
        session_id: str,
        tool_name: str,
        tool_type: Optional[str] = None,
        page_path: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> ToolInteraction:
        return self.save(
            ToolInteraction(
                session_id=session_id,
                tool_name=tool_name,
                tool_type=tool_type,
                page_path=page_path,
                metadata_json=metadata or {},
            )
        )


class FormSubmissionsRepository(Repository):
    def create(
        self,
        *,
        form_name: str,
        form_data: dict[str, Any],
        session_id: Optional[str] = None,
        page_path: Optional[str] = None,
    ) -> FormSubmission:
        return self.save(
            FormSubmission(
                session_id=session_id,
                form_name=form_name,
                form_data=form_data,
                page_path=page_path,
            )
        )


class LeadsRepository(Repository):
    def create(
        self,
        *,
        email: str,
        phone: Optional[str] = None,
        domain: Optional[str] = None,
        metric_type: Optional[str] = None,
        source_page: Optional[str] = None,
    ) -> Lead:
        return self.save(
            Lead(
                email=email,
                phone=phone,
                domain=domain,
                metric_type=metric_type,
                source_page=source_page,
            )
        )
