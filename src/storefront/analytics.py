"""Analytics aggregator: event, page view and session tracking plus statistics."""

from datetime import datetime, timedelta, timezone
from typing import Any

import structlog

from .models import (
    AnalyticsReport,
    CleanupCounts,
    ClientContext,
    DeviceInfo,
    EventStatistics,
    PageView,
    ReportSummary,
    TrackedEvent,
    UserBehavior,
    UserSession,
    VisitStatistics,
    _parse_timestamp,
    _utc_now,
    generate_event_id,
    generate_session_id,
)
from .pricing import round_half_up
from .storage import EVENTS_KEY, PAGE_VIEWS_KEY, SESSIONS_KEY, KeyValueStore

logger = structlog.get_logger(__name__)

ANALYTICS_RETENTION_DAYS = 90
TOP_EVENTS_LIMIT = 10

ADD_TO_CART = "addToCart"
CHECKOUT = "checkout"
PURCHASE = "purchase"
SEARCH = "search"
VIEW_PRODUCT = "viewProduct"


def _count_by(values: list[Any]) -> dict[Any, int]:
    """Count occurrences, keeping first-encounter order."""
    counts: dict[Any, int] = {}
    for value in values:
        counts[value] = counts.get(value, 0) + 1
    return counts


class AnalyticsAggregator:
    """
    Owns tracked events, page views and user sessions.

    Statistics are recomputed from the full stored collections on every call.
    Each collection is rewritten whole after the operation that changes it.
    """

    def __init__(self, store: KeyValueStore, context: ClientContext | None = None):
        self.store = store
        self.context = context or ClientContext()
        self._events = [TrackedEvent.from_dict(e) for e in store.get(EVENTS_KEY) or []]
        self._page_views = [PageView.from_dict(p) for p in store.get(PAGE_VIEWS_KEY) or []]
        self._sessions = [UserSession.from_dict(s) for s in store.get(SESSIONS_KEY) or []]

    @property
    def events(self) -> list[TrackedEvent]:
        return list(self._events)

    @property
    def page_views(self) -> list[PageView]:
        return list(self._page_views)

    @property
    def sessions(self) -> list[UserSession]:
        return list(self._sessions)

    def _save_events(self) -> None:
        self.store.set(EVENTS_KEY, [e.to_dict() for e in self._events])

    def _save_page_views(self) -> None:
        self.store.set(PAGE_VIEWS_KEY, [p.to_dict() for p in self._page_views])

    def _save_sessions(self) -> None:
        self.store.set(SESSIONS_KEY, [s.to_dict() for s in self._sessions])

    # --- Ingestion ---

    def track_event(
        self,
        event_type: str,
        data: dict[str, Any] | None = None,
        url: str | None = None,
    ) -> TrackedEvent:
        """Record a behavioral event. The payload is stored as given."""
        event = TrackedEvent(
            id=generate_event_id(),
            type=event_type,
            data=dict(data or {}),
            timestamp=_utc_now(),
            url=self.context.url if url is None else url,
            user_agent=self.context.user_agent,
        )
        self._events.append(event)
        self._save_events()

        logger.debug("Event tracked", event_id=event.id, event_type=event_type)
        return event

    def track_page_view(
        self,
        page_name: str,
        page_url: str | None = None,
        referrer: str | None = None,
    ) -> PageView:
        page_view = PageView(
            id=generate_event_id(),
            page_name=page_name,
            page_url=self.context.url if page_url is None else page_url,
            timestamp=_utc_now(),
            referrer=self.context.referrer if referrer is None else referrer,
            user_agent=self.context.user_agent,
        )
        self._page_views.append(page_view)
        self._save_page_views()

        logger.debug("Page view tracked", page_name=page_name)
        return page_view

    def start_session(self, user_id: str | None, device_info: DeviceInfo | None = None) -> str:
        """Open a session for user_id and return its ID."""
        session = UserSession(
            id=generate_session_id(),
            user_id=user_id,
            start_time=_utc_now(),
            device_info=device_info or self.context.device_info,
        )
        self._sessions.append(session)
        self._save_sessions()

        logger.info("Session started", session_id=session.id, user_id=user_id)
        return session.id

    def end_session(self, session_id: str) -> bool:
        """
        Close a session, deriving its duration in milliseconds.

        Returns False (and changes nothing) if the session is unknown or
        already closed.
        """
        session = next((s for s in self._sessions if s.id == session_id), None)
        if session is None:
            logger.warning("End requested for unknown session", session_id=session_id)
            return False
        if session.is_closed:
            return False

        end_time = _utc_now()
        elapsed = _parse_timestamp(end_time) - _parse_timestamp(session.start_time)
        session.end_time = end_time
        session.duration = elapsed // timedelta(milliseconds=1)
        self._save_sessions()

        logger.info("Session ended", session_id=session_id, duration_ms=session.duration)
        return True

    # --- Statistics ---

    def _events_by_type(self) -> dict[str, int]:
        return _count_by([e.type for e in self._events])

    def get_visit_statistics(self) -> VisitStatistics:
        closed = [s for s in self._sessions if s.is_closed]
        average = 0
        if closed:
            average = round_half_up(sum(s.duration for s in closed) / len(closed))

        return VisitStatistics(
            total_page_views=len(self._page_views),
            unique_pages=len({p.page_name for p in self._page_views}),
            total_sessions=len(self._sessions),
            average_session_duration=average,
            top_pages=_count_by([p.page_name for p in self._page_views]),
            referrers=_count_by([p.referrer for p in self._page_views if p.referrer]),
        )

    def get_event_statistics(self) -> EventStatistics:
        by_type = self._events_by_type()
        by_date = _count_by([e.timestamp.split("T")[0] for e in self._events])

        # sorted() is stable, so equal counts keep first-encounter order
        top = sorted(by_type.items(), key=lambda item: item[1], reverse=True)

        return EventStatistics(
            total_events=len(self._events),
            events_by_type=by_type,
            events_by_date=by_date,
            top_events=top[:TOP_EVENTS_LIMIT],
        )

    def get_conversion_rate(self) -> float:
        """Checkouts per add-to-cart, as a percentage with two decimals."""
        counts = self._events_by_type()
        added = counts.get(ADD_TO_CART, 0)
        if added == 0:
            return 0.0
        return round(counts.get(CHECKOUT, 0) / added * 100, 2)

    def get_user_behavior(self) -> UserBehavior:
        """
        Summarize product views, searches and cart outcomes.

        abandoned_carts is the global difference between addToCart and
        checkout events; the two streams are not paired per order, so the
        value is negative when checkouts outnumber cart additions.
        """
        viewed = [
            str(e.data["productId"])
            for e in self._events
            if e.type == VIEW_PRODUCT and e.data.get("productId") is not None
        ]
        searched = [
            str(e.data["searchTerm"])
            for e in self._events
            if e.type == SEARCH and e.data.get("searchTerm") is not None
        ]
        counts = self._events_by_type()

        return UserBehavior(
            most_viewed_products=_count_by(viewed),
            most_searched_terms=_count_by(searched),
            abandoned_carts=counts.get(ADD_TO_CART, 0) - counts.get(CHECKOUT, 0),
            completed_purchases=counts.get(PURCHASE, 0),
        )

    # --- Maintenance ---

    def cleanup_old_data(
        self,
        retention_days: int = ANALYTICS_RETENTION_DAYS,
        now: datetime | None = None,
    ) -> CleanupCounts:
        """
        Drop records older than the retention window.

        Events and page views are aged by timestamp, sessions by start time.
        Records exactly at the cutoff are kept.
        """
        now = now or datetime.now(timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        cutoff = now - timedelta(days=retention_days)

        initial = (len(self._events), len(self._page_views), len(self._sessions))

        self._events = [e for e in self._events if _parse_timestamp(e.timestamp) >= cutoff]
        self._page_views = [
            p for p in self._page_views if _parse_timestamp(p.timestamp) >= cutoff
        ]
        self._sessions = [
            s for s in self._sessions if _parse_timestamp(s.start_time) >= cutoff
        ]

        self._save_events()
        self._save_page_views()
        self._save_sessions()

        counts = CleanupCounts(
            events_deleted=initial[0] - len(self._events),
            page_views_deleted=initial[1] - len(self._page_views),
            sessions_deleted=initial[2] - len(self._sessions),
        )
        logger.info("Old analytics cleaned up", retention_days=retention_days, **counts.to_dict())
        return counts

    def generate_comprehensive_report(self) -> AnalyticsReport:
        return AnalyticsReport(
            generated_at=_utc_now(),
            visit_statistics=self.get_visit_statistics(),
            event_statistics=self.get_event_statistics(),
            user_behavior=self.get_user_behavior(),
            conversion_rate=self.get_conversion_rate(),
            summary=ReportSummary(
                total_events=len(self._events),
                total_page_views=len(self._page_views),
                total_sessions=len(self._sessions),
                data_retention_days=ANALYTICS_RETENTION_DAYS,
            ),
        )
