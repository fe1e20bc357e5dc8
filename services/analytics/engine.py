"""
Analytics Aggregation Engine

Read-only grouped computations over responses, for one form or for all
forms of an owner.

Each aggregation opens its own session, so a composite view fans its
aggregations out concurrently through ``gather_isolated``: a failing
aggregation falls back to its empty default and the others still
report. Ownership checks run before the fan-out and are not isolated.

Row shapes use the API's camelCase keys.

Usage:
    service = AnalyticsService(supervisor.session_factory)
    analytics = await service.form_analytics(owner_id, form_id)
"""

import json
import math
from collections import Counter
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import async_sessionmaker

from config.constants import (
    CREATION_TREND_MONTHS,
    PROFILE_ACTIVITY_DAYS,
    PROFILE_RECENT_SUBMISSIONS,
    RECENT_ACTIVITY_LIMIT,
    RECENT_FORMS_LIMIT,
    RECENT_RESPONSES_LIMIT,
    TOP_FORMS_LIMIT,
    TOP_VALUES_LIMIT,
    TREND_WINDOW_DAYS,
)
from core.database import store_operation, utcnow
from core.models import Form, Response
from utils.exceptions import NotFoundError
from utils.logging import get_logger
from utils.resilience import gather_isolated

logger = get_logger(__name__)


def months_ago(moment: datetime, months: int) -> datetime:
    """Same wall-clock time ``months`` calendar months earlier, day clamped."""
    month_index = moment.year * 12 + (moment.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    # Last day of the target month
    next_month = datetime(year + (month // 12), month % 12 + 1, 1)
    last_day = (next_month - timedelta(days=1)).day
    return moment.replace(year=year, month=month, day=min(moment.day, last_day))


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _value_key(value: Any) -> str:
    return json.dumps(value, sort_keys=True, default=str)


class AnalyticsService:
    """
    Aggregations over the Response and Form tables.

    Args:
        session_factory: Factory yielding AsyncSession instances
        now: Clock returning naive UTC datetimes
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        now: Callable[[], datetime] = utcnow,
    ):
        self._session_factory = session_factory
        self._now = now

    async def _rows(self, query) -> List[Any]:
        async with self._session_factory() as session:
            result = await session.execute(query)
            return list(result.all())

    async def _scalar(self, query) -> Any:
        async with self._session_factory() as session:
            result = await session.execute(query)
            return result.scalar_one()

    # =========================================================================
    # Ownership
    # =========================================================================

    @store_operation
    async def _owned_form(self, owner_id: int, form_id: int) -> Form:
        async with self._session_factory() as session:
            result = await session.execute(
                select(Form).where(Form.id == form_id, Form.owner_id == owner_id)
            )
            form = result.scalars().first()
        if form is None:
            logger.warning(f"Analytics requested for form {form_id} not owned by {owner_id}")
            raise NotFoundError("Form not found", resource="form")
        return form

    @store_operation
    async def _active_forms(self, owner_id: int, order_by=None) -> List[Form]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(Form)
                .where(Form.owner_id == owner_id, Form.is_active.is_(True))
                .order_by(*(order_by or (Form.updated_at.desc(), Form.id.desc())))
            )
            return list(result.scalars().all())

    # =========================================================================
    # Single-form Aggregations
    # =========================================================================

    @store_operation
    async def response_count(self, form_id: int) -> int:
        return await self._scalar(
            select(func.count(Response.id)).where(Response.form_id == form_id)
        )

    @store_operation
    async def responses_with_users(self, form_id: int) -> int:
        return await self._scalar(
            select(func.count(Response.id))
            .where(Response.form_id == form_id, Response.user_id.isnot(None))
        )

    @store_operation
    async def daily_trend(self, form_id: int, since: datetime) -> List[Dict[str, Any]]:
        """Responses per calendar day (UTC) since ``since``, ascending."""
        rows = await self._rows(
            select(Response.submitted_at)
            .where(Response.form_id == form_id, Response.submitted_at >= since)
        )
        buckets = Counter(submitted.strftime("%Y-%m-%d") for (submitted,) in rows)
        return [{"date": day, "count": buckets[day]} for day in sorted(buckets)]

    async def _distribution(self, form_id: int, column, key: str) -> List[Dict[str, Any]]:
        rows = await self._rows(
            select(column, func.count(Response.id).label("count"))
            .where(Response.form_id == form_id)
            .group_by(column)
            .order_by(func.count(Response.id).desc(), column)
        )
        return [{key: value, "count": count} for value, count in rows]

    @store_operation
    async def device_distribution(self, form_id: int) -> List[Dict[str, Any]]:
        return await self._distribution(form_id, Response.device_type, "deviceType")

    @store_operation
    async def browser_distribution(self, form_id: int) -> List[Dict[str, Any]]:
        return await self._distribution(form_id, Response.browser, "browser")

    @store_operation
    async def hourly_distribution(self, form_id: int) -> List[Dict[str, Any]]:
        """Responses per hour of day (0-23, UTC), ascending."""
        rows = await self._rows(
            select(Response.submitted_at).where(Response.form_id == form_id)
        )
        buckets = Counter(submitted.hour for (submitted,) in rows)
        return [{"hour": hour, "count": buckets[hour]} for hour in sorted(buckets)]

    @store_operation
    async def per_field_top_values(
        self,
        form_id: int,
        fields: Optional[List[Dict[str, Any]]] = None,
    ) -> List[Dict[str, Any]]:
        """
        Most frequent raw answer values for each field of the form.

        Values are grouped exactly as stored ("Yes" and "yes" differ).
        Ties keep first-seen order.
        """
        if fields is None:
            async with self._session_factory() as session:
                form = await session.get(Form, form_id)
            fields = form.fields if form is not None else []

        rows = await self._rows(
            select(Response.answers)
            .where(Response.form_id == form_id)
            .order_by(Response.submitted_at, Response.id)
        )

        counters: Dict[str, Counter] = {}
        samples: Dict[str, Dict[str, Any]] = {}
        for (answers,) in rows:
            for answer in answers or []:
                field_id = answer.get("field_id")
                value = answer.get("value")
                key = _value_key(value)
                counters.setdefault(field_id, Counter())[key] += 1
                samples.setdefault(field_id, {}).setdefault(key, value)

        report = []
        for field in fields or []:
            counter = counters.get(field.get("id"), Counter())
            ranked = sorted(counter.items(), key=lambda item: -item[1])[:TOP_VALUES_LIMIT]
            top = [
                {"value": samples[field["id"]][key], "count": count}
                for key, count in ranked
            ]
            report.append({
                "fieldId": field.get("id"),
                "fieldLabel": field.get("label"),
                "fieldType": field.get("type"),
                "responseCount": len(top),
                "topResponses": top,
            })
        return report

    @store_operation
    async def completion_stats(self, form_id: int) -> Optional[Dict[str, Any]]:
        """Time-spent statistics, or None when no response recorded one."""
        rows = await self._rows(
            select(
                func.avg(Response.time_spent),
                func.min(Response.time_spent),
                func.max(Response.time_spent),
                func.count(Response.id),
            ).where(Response.form_id == form_id, Response.time_spent.isnot(None))
        )
        avg_time, min_time, max_time, total = rows[0]
        if not total:
            return None
        return {
            "avgTimeSpent": float(avg_time),
            "minTimeSpent": min_time,
            "maxTimeSpent": max_time,
            "totalCompletions": total,
        }

    @store_operation
    async def recent_responses(self, form_id: int, limit: int = RECENT_RESPONSES_LIMIT) -> List[Response]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(Response)
                .where(Response.form_id == form_id)
                .order_by(Response.submitted_at.desc(), Response.id.desc())
                .limit(limit)
            )
            return list(result.scalars().all())

    # =========================================================================
    # Multi-form Aggregations
    # =========================================================================

    @store_operation
    async def counts_by_form(
        self,
        form_ids: List[int],
        since: Optional[datetime] = None,
    ) -> Dict[int, int]:
        if not form_ids:
            return {}
        query = (
            select(Response.form_id, func.count(Response.id))
            .where(Response.form_id.in_(form_ids))
            .group_by(Response.form_id)
        )
        if since is not None:
            query = query.where(Response.submitted_at >= since)
        return {form_id: count for form_id, count in await self._rows(query)}

    @store_operation
    async def total_responses(self, form_ids: List[int]) -> int:
        if not form_ids:
            return 0
        return await self._scalar(
            select(func.count(Response.id)).where(Response.form_id.in_(form_ids))
        )

    @store_operation
    async def last_submission_by_form(self, form_ids: List[int]) -> Dict[int, datetime]:
        if not form_ids:
            return {}
        rows = await self._rows(
            select(Response.form_id, func.max(Response.submitted_at))
            .where(Response.form_id.in_(form_ids))
            .group_by(Response.form_id)
        )
        return dict(rows)

    @store_operation
    async def devices_by_form(self, form_ids: List[int]) -> Dict[int, List[Dict[str, Any]]]:
        if not form_ids:
            return {}
        rows = await self._rows(
            select(Response.form_id, Response.device_type, func.count(Response.id))
            .where(Response.form_id.in_(form_ids))
            .group_by(Response.form_id, Response.device_type)
            .order_by(Response.form_id, func.count(Response.id).desc())
        )
        devices: Dict[int, List[Dict[str, Any]]] = {}
        for form_id, device_type, count in rows:
            devices.setdefault(form_id, []).append({"deviceType": device_type, "count": count})
        return devices

    @store_operation
    async def avg_time_by_form(self, form_ids: List[int]) -> Dict[int, float]:
        if not form_ids:
            return {}
        rows = await self._rows(
            select(Response.form_id, func.avg(Response.time_spent))
            .where(Response.form_id.in_(form_ids), Response.time_spent.isnot(None))
            .group_by(Response.form_id)
        )
        return {form_id: float(avg) for form_id, avg in rows}

    @store_operation
    async def recent_submissions_by_form(
        self,
        form_ids: List[int],
        limit: int = PROFILE_RECENT_SUBMISSIONS,
    ) -> Dict[int, List[Dict[str, Any]]]:
        """The ``limit`` newest submissions of each form."""
        if not form_ids:
            return {}
        ranked = (
            select(
                Response.id,
                Response.form_id,
                Response.submitted_at,
                Response.ip_address,
                Response.device_type,
                func.row_number().over(
                    partition_by=Response.form_id,
                    order_by=(Response.submitted_at.desc(), Response.id.desc()),
                ).label("position"),
            )
            .where(Response.form_id.in_(form_ids))
            .subquery()
        )
        rows = await self._rows(
            select(ranked)
            .where(ranked.c.position <= limit)
            .order_by(ranked.c.form_id, ranked.c.position)
        )
        recent: Dict[int, List[Dict[str, Any]]] = {}
        for row in rows:
            recent.setdefault(row.form_id, []).append({
                "id": row.id,
                "submittedAt": row.submitted_at,
                "ipAddress": row.ip_address,
                "deviceType": row.device_type,
            })
        return recent

    @store_operation
    async def activity_feed(
        self,
        form_ids: List[int],
        limit: int,
        since: Optional[datetime] = None,
    ) -> List[Dict[str, Any]]:
        """Newest responses across forms, each with its form title."""
        if not form_ids:
            return []
        query = (
            select(Response, Form.title)
            .join(Form, Form.id == Response.form_id)
            .where(Response.form_id.in_(form_ids))
            .order_by(Response.submitted_at.desc(), Response.id.desc())
            .limit(limit)
        )
        if since is not None:
            query = query.where(Response.submitted_at >= since)
        return [
            {
                "id": response.id,
                "formId": response.form_id,
                "formTitle": title,
                "submittedAt": response.submitted_at,
                "ipAddress": response.ip_address,
                "deviceType": response.device_type,
                "browser": response.browser,
            }
            for response, title in await self._rows(query)
        ]

    @store_operation
    async def creation_trend(self, owner_id: int, since: datetime) -> List[Dict[str, Any]]:
        """Active forms created per calendar month since ``since``, ascending."""
        rows = await self._rows(
            select(Form.created_at).where(
                Form.owner_id == owner_id,
                Form.is_active.is_(True),
                Form.created_at >= since,
            )
        )
        buckets = Counter(created.strftime("%Y-%m") for (created,) in rows)
        return [{"month": month, "count": buckets[month]} for month in sorted(buckets)]

    # =========================================================================
    # Composite Views
    # =========================================================================

    async def form_analytics(self, owner_id: int, form_id: int) -> Dict[str, Any]:
        """Full analytics for one owned form."""
        form = await self._owned_form(owner_id, form_id)
        since = self._now() - timedelta(days=TREND_WINDOW_DAYS)

        results = await gather_isolated({
            "totalResponses": (self.response_count(form.id), 0),
            "dailyTrends": (self.daily_trend(form.id, since), []),
            "deviceStats": (self.device_distribution(form.id), []),
            "browserStats": (self.browser_distribution(form.id), []),
            "hourlyDistribution": (self.hourly_distribution(form.id), []),
            "fieldAnalytics": (self.per_field_top_values(form.id, form.fields), []),
            "completionStats": (self.completion_stats(form.id), None),
        })

        return {
            "form": {
                "id": form.id,
                "title": form.title,
                "description": form.description,
                "fieldCount": form.field_count,
                "createdAt": form.created_at,
            },
            "analytics": results,
        }

    async def form_details(self, owner_id: int, form_id: int) -> Dict[str, Any]:
        """Owned form with headline statistics and its newest responses."""
        form = await self._owned_form(owner_id, form_id)
        since = self._now() - timedelta(days=TREND_WINDOW_DAYS)

        results = await gather_isolated({
            "totalResponses": (self.response_count(form.id), 0),
            "deviceStats": (self.device_distribution(form.id), []),
            "browserStats": (self.browser_distribution(form.id), []),
            "dailyResponses": (self.daily_trend(form.id, since), []),
            "recentResponses": (self.recent_responses(form.id), []),
        })
        recent = results.pop("recentResponses")

        return {"form": form, "statistics": results, "recentResponses": recent}

    async def form_stats(self, owner_id: int, form_id: int) -> Dict[str, Any]:
        form = await self._owned_form(owner_id, form_id)
        results = await gather_isolated({
            "totalResponses": (self.response_count(form.id), 0),
        })
        return {
            "formId": form.id,
            "title": form.title,
            "totalResponses": results["totalResponses"],
            "createdAt": form.created_at,
            "lastUpdated": form.updated_at,
        }

    async def response_analytics(self, owner_id: int, form_id: int) -> Dict[str, Any]:
        form = await self._owned_form(owner_id, form_id)
        since = self._now() - timedelta(days=TREND_WINDOW_DAYS)

        return await gather_isolated({
            "totalResponses": (self.response_count(form.id), 0),
            "responsesWithUsers": (self.responses_with_users(form.id), 0),
            "deviceStats": (self.device_distribution(form.id), []),
            "browserStats": (self.browser_distribution(form.id), []),
            "dailyResponses": (self.daily_trend(form.id, since), []),
        })

    async def dashboard_overview(self, owner_id: int) -> Dict[str, Any]:
        """
        Owner dashboard: totals, newest forms, busiest forms and the
        newest responses across all active forms.
        """
        forms = await self._active_forms(owner_id)
        form_ids = [f.id for f in forms]

        results = await gather_isolated({
            "totalResponses": (self.total_responses(form_ids), 0),
            "counts": (self.counts_by_form(form_ids), {}),
            "recentResponses": (self.activity_feed(form_ids, RECENT_RESPONSES_LIMIT), []),
        })
        counts = results["counts"]

        newest = sorted(forms, key=lambda f: f.created_at, reverse=True)[:RECENT_FORMS_LIMIT]
        with_counts = [
            {
                "id": f.id,
                "title": f.title,
                "responseCount": counts.get(f.id, 0),
                "createdAt": f.created_at,
            }
            for f in forms
        ]
        top = sorted(with_counts, key=lambda f: -f["responseCount"])[:TOP_FORMS_LIMIT]

        return {
            "totalForms": len(forms),
            "totalResponses": results["totalResponses"],
            "recentForms": [
                {"id": f.id, "title": f.title, "createdAt": f.created_at} for f in newest
            ],
            "topForms": top,
            "recentResponses": results["recentResponses"],
        }

    async def management_overview(self, owner_id: int) -> Dict[str, Any]:
        """
        Per-form analytics for every active form plus owner-level trends.

        Windows: today starts at UTC midnight, the week is the last 7
        days and the month is one calendar month back from now.
        """
        forms = await self._active_forms(owner_id)
        form_ids = [f.id for f in forms]

        now = self._now()
        today = now.replace(hour=0, minute=0, second=0, microsecond=0)
        week_ago = now - timedelta(days=7)
        month_ago = months_ago(now, 1)

        results = await gather_isolated({
            "total": (self.counts_by_form(form_ids), {}),
            "today": (self.counts_by_form(form_ids, since=today), {}),
            "week": (self.counts_by_form(form_ids, since=week_ago), {}),
            "month": (self.counts_by_form(form_ids, since=month_ago), {}),
            "lastSubmission": (self.last_submission_by_form(form_ids), {}),
            "devices": (self.devices_by_form(form_ids), {}),
            "avgTime": (self.avg_time_by_form(form_ids), {}),
            "totalResponses": (self.total_responses(form_ids), 0),
            "creationTrend": (
                self.creation_trend(owner_id, months_ago(now, CREATION_TREND_MONTHS)), []
            ),
            "recentActivity": (self.activity_feed(form_ids, RECENT_ACTIVITY_LIMIT), []),
        })

        forms_with_analytics = [
            {
                "id": f.id,
                "title": f.title,
                "description": f.description,
                "theme": f.theme,
                "createdAt": f.created_at,
                "updatedAt": f.updated_at,
                "fieldCount": f.field_count,
                "analytics": {
                    "totalResponses": results["total"].get(f.id, 0),
                    "todayResponses": results["today"].get(f.id, 0),
                    "weekResponses": results["week"].get(f.id, 0),
                    "monthResponses": results["month"].get(f.id, 0),
                    "lastSubmission": results["lastSubmission"].get(f.id),
                    "deviceStats": results["devices"].get(f.id, []),
                    "avgTimeSpent": results["avgTime"].get(f.id, 0),
                },
            }
            for f in forms
        ]

        total_forms = len(forms)
        total_responses = results["totalResponses"]
        top = sorted(
            forms_with_analytics,
            key=lambda f: -f["analytics"]["totalResponses"],
        )[:TOP_FORMS_LIMIT]

        return {
            "forms": forms_with_analytics,
            "overview": {
                "totalForms": total_forms,
                "totalResponses": total_responses,
                "averageResponsesPerForm": (
                    round_half_up(total_responses / total_forms) if total_forms else 0
                ),
                "creationTrend": results["creationTrend"],
                "topForms": top,
                "recentActivity": results["recentActivity"],
            },
        }

    async def profile_overview(self, owner_id: int) -> Dict[str, Any]:
        """Forms summary shown on the owner's profile page."""
        forms = await self._active_forms(owner_id)
        form_ids = [f.id for f in forms]
        now = self._now()

        results = await gather_isolated({
            "counts": (self.counts_by_form(form_ids), {}),
            "lastSubmission": (self.last_submission_by_form(form_ids), {}),
            "recent": (self.recent_submissions_by_form(form_ids), {}),
            "totalResponses": (self.total_responses(form_ids), 0),
            "recentActivity": (
                self.activity_feed(
                    form_ids,
                    RECENT_RESPONSES_LIMIT,
                    since=now - timedelta(days=PROFILE_ACTIVITY_DAYS),
                ),
                [],
            ),
            "formsByMonth": (
                self.creation_trend(owner_id, months_ago(now, CREATION_TREND_MONTHS)), []
            ),
        })

        total_forms = len(forms)
        total_responses = results["totalResponses"]

        return {
            "forms": [
                {
                    "id": f.id,
                    "title": f.title,
                    "description": f.description,
                    "theme": f.theme,
                    "createdAt": f.created_at,
                    "updatedAt": f.updated_at,
                    "responseCount": results["counts"].get(f.id, 0),
                    "lastSubmission": results["lastSubmission"].get(f.id),
                    "recentSubmissions": results["recent"].get(f.id, []),
                    "fieldCount": f.field_count,
                    "isActive": f.is_active,
                }
                for f in forms
            ],
            "statistics": {
                "totalForms": total_forms,
                "totalResponses": total_responses,
                "averageResponsesPerForm": (
                    round_half_up(total_responses / total_forms) if total_forms else 0
                ),
                "formsByMonth": results["formsByMonth"],
            },
            "recentActivity": results["recentActivity"],
        }
