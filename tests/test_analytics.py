"""
Tests for the Analytics Aggregation Engine

Covers single-form aggregations, the composite views, and per-aggregation
isolation when one query fails.
"""

from datetime import datetime
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy.exc import OperationalError

from services.analytics import AnalyticsService, months_ago, round_half_up
from utils.exceptions import NotFoundError, StoreUnavailableError

NOW = datetime(2024, 6, 20, 15, 30)


@pytest.fixture
def analytics(supervisor):
    return AnalyticsService(supervisor.session_factory, now=lambda: NOW)


@pytest.fixture
async def owner(make_user):
    return await make_user()


class TestHelpers:

    @pytest.mark.parametrize("moment,months,expected", [
        (datetime(2024, 3, 31, 8), 1, datetime(2024, 2, 29, 8)),
        (datetime(2024, 1, 15), 1, datetime(2023, 12, 15)),
        (datetime(2024, 6, 20), 6, datetime(2023, 12, 20)),
        (datetime(2023, 5, 31), 3, datetime(2023, 2, 28)),
    ])
    def test_months_ago(self, moment, months, expected):
        assert months_ago(moment, months) == expected

    @pytest.mark.parametrize("value,expected", [(2.5, 3), (1.4, 1), (0.5, 1), (3.0, 3)])
    def test_round_half_up(self, value, expected):
        assert round_half_up(value) == expected


class TestFieldTopValues:

    async def test_values_ranked_by_count(self, analytics, owner, make_form, make_response):
        form = await make_form(owner)
        for value in ("Red", "Red", "Blue"):
            await make_response(form, owner, value=value)

        report = await analytics.per_field_top_values(form.id)

        assert report == [{
            "fieldId": "f1",
            "fieldLabel": "Color",
            "fieldType": "select",
            "responseCount": 2,
            "topResponses": [{"value": "Red", "count": 2}, {"value": "Blue", "count": 1}],
        }]

    async def test_values_are_case_sensitive(self, analytics, owner, make_form, make_response):
        form = await make_form(owner)
        await make_response(form, owner, value="Yes")
        await make_response(form, owner, value="yes")

        report = await analytics.per_field_top_values(form.id)

        assert {v["value"] for v in report[0]["topResponses"]} == {"Yes", "yes"}

    async def test_list_values_grouped_whole(self, analytics, owner, make_form, make_response):
        form = await make_form(owner)
        await make_response(form, owner, value=["a", "b"])
        await make_response(form, owner, value=["a", "b"])
        await make_response(form, owner, value=["a"])

        top = (await analytics.per_field_top_values(form.id))[0]["topResponses"]

        assert top[0] == {"value": ["a", "b"], "count": 2}

    async def test_limited_to_ten_values(self, analytics, owner, make_form, make_response):
        form = await make_form(owner)
        for n in range(12):
            await make_response(form, owner, value=f"v{n}")

        top = (await analytics.per_field_top_values(form.id))[0]["topResponses"]

        assert len(top) == 10
        # Ties keep first-seen order
        assert top[0]["value"] == "v0"

    async def test_fields_without_answers_reported_empty(self, analytics, owner, make_form):
        form = await make_form(owner)

        report = await analytics.per_field_top_values(form.id)

        assert report[0]["topResponses"] == []
        assert report[0]["responseCount"] == 0


class TestDistributions:

    async def test_device_and_browser_counts(self, analytics, owner, make_form, make_response):
        form = await make_form(owner)
        await make_response(form, owner, device_type="mobile", browser="Safari")
        await make_response(form, owner, device_type="mobile", browser="Chrome")
        await make_response(form, owner, device_type="desktop", browser="Chrome")

        assert await analytics.device_distribution(form.id) == [
            {"deviceType": "mobile", "count": 2},
            {"deviceType": "desktop", "count": 1},
        ]
        assert await analytics.browser_distribution(form.id) == [
            {"browser": "Chrome", "count": 2},
            {"browser": "Safari", "count": 1},
        ]

    async def test_hourly_distribution(self, analytics, owner, make_form, make_response):
        form = await make_form(owner)
        await make_response(form, owner, submitted_at=datetime(2024, 6, 1, 9, 5))
        await make_response(form, owner, submitted_at=datetime(2024, 6, 2, 9, 55))
        await make_response(form, owner, submitted_at=datetime(2024, 6, 2, 23, 0))

        assert await analytics.hourly_distribution(form.id) == [
            {"hour": 9, "count": 2},
            {"hour": 23, "count": 1},
        ]

    async def test_daily_trend_window(self, analytics, owner, make_form, make_response):
        form = await make_form(owner)
        await make_response(form, owner, submitted_at=datetime(2024, 4, 1))
        await make_response(form, owner, submitted_at=datetime(2024, 6, 18, 8))
        await make_response(form, owner, submitted_at=datetime(2024, 6, 18, 20))
        await make_response(form, owner, submitted_at=datetime(2024, 6, 19, 1))

        trend = await analytics.daily_trend(form.id, datetime(2024, 5, 21))

        assert trend == [
            {"date": "2024-06-18", "count": 2},
            {"date": "2024-06-19", "count": 1},
        ]

    async def test_completion_stats(self, analytics, owner, make_form, make_response):
        form = await make_form(owner)
        assert await analytics.completion_stats(form.id) is None

        await make_response(form, owner, time_spent=30)
        await make_response(form, owner, time_spent=90)
        await make_response(form, owner)

        stats = await analytics.completion_stats(form.id)

        assert stats == {
            "avgTimeSpent": 60.0,
            "minTimeSpent": 30,
            "maxTimeSpent": 90,
            "totalCompletions": 2,
        }


class TestFormAnalytics:

    async def test_full_report(self, analytics, owner, make_form, make_response):
        form = await make_form(owner)
        for value in ("Red", "Red", "Blue"):
            await make_response(form, owner, value=value, submitted_at=datetime(2024, 6, 19, 10))

        report = await analytics.form_analytics(owner.id, form.id)

        assert report["form"]["fieldCount"] == 1
        data = report["analytics"]
        assert data["totalResponses"] == 3
        assert data["dailyTrends"] == [{"date": "2024-06-19", "count": 3}]
        assert data["fieldAnalytics"][0]["topResponses"][0] == {"value": "Red", "count": 2}
        assert data["completionStats"] is None

    async def test_other_owner_not_found(self, analytics, owner, make_user, make_form):
        stranger = await make_user(email="stranger@example.com")
        form = await make_form(owner)

        with pytest.raises(NotFoundError):
            await analytics.form_analytics(stranger.id, form.id)

    async def test_failing_aggregation_falls_back(self, analytics, owner, make_form, make_response):
        form = await make_form(owner)
        await make_response(form, owner)

        broken = AsyncMock(side_effect=RuntimeError("device query exploded"))

        with patch.object(analytics, "device_distribution", broken):
            report = await analytics.form_analytics(owner.id, form.id)

        broken.assert_awaited_once_with(form.id)

        assert report["analytics"]["deviceStats"] == []
        assert report["analytics"]["totalResponses"] == 1
        assert report["analytics"]["browserStats"] == [{"browser": "Chrome", "count": 1}]

    async def test_soft_deleted_form_keeps_counts(self, analytics, owner, make_form, make_response):
        form = await make_form(owner, is_active=False)
        await make_response(form, owner)

        stats = await analytics.form_stats(owner.id, form.id)

        assert stats["totalResponses"] == 1

    async def test_form_details(self, analytics, owner, make_form, make_response):
        form = await make_form(owner)
        for _ in range(12):
            await make_response(form, owner)

        details = await analytics.form_details(owner.id, form.id)

        assert details["form"].id == form.id
        assert details["statistics"]["totalResponses"] == 12
        assert len(details["recentResponses"]) == 10

    async def test_response_analytics_counts_known_users(
        self, analytics, owner, make_form, make_response
    ):
        form = await make_form(owner)
        await make_response(form, owner)

        report = await analytics.response_analytics(owner.id, form.id)

        assert report["totalResponses"] == 1
        assert report["responsesWithUsers"] == 1


class TestOwnerViews:

    async def test_dashboard_overview(self, analytics, owner, make_form, make_response):
        busy = await make_form(owner, title="Busy", created_at=datetime(2024, 1, 1))
        quiet = await make_form(owner, title="Quiet", created_at=datetime(2024, 5, 1))
        await make_form(owner, title="Deleted", is_active=False)
        for _ in range(3):
            await make_response(busy, owner)
        await make_response(quiet, owner)

        overview = await analytics.dashboard_overview(owner.id)

        assert overview["totalForms"] == 2
        assert overview["totalResponses"] == 4
        assert [f["title"] for f in overview["recentForms"]] == ["Quiet", "Busy"]
        assert overview["topForms"][0]["title"] == "Busy"
        assert overview["topForms"][0]["responseCount"] == 3
        assert len(overview["recentResponses"]) == 4

    async def test_dashboard_for_owner_without_forms(self, analytics, owner):
        overview = await analytics.dashboard_overview(owner.id)

        assert overview["totalForms"] == 0
        assert overview["totalResponses"] == 0
        assert overview["topForms"] == []

    async def test_management_windows(self, analytics, owner, make_form, make_response):
        form = await make_form(owner, created_at=datetime(2024, 3, 10))
        await make_response(form, owner, submitted_at=datetime(2024, 6, 20, 1), time_spent=10)
        await make_response(form, owner, submitted_at=datetime(2024, 6, 15), time_spent=20)
        await make_response(form, owner, submitted_at=datetime(2024, 6, 1))
        await make_response(form, owner, submitted_at=datetime(2024, 1, 1))

        overview = await analytics.management_overview(owner.id)

        stats = overview["forms"][0]["analytics"]
        assert stats["totalResponses"] == 4
        assert stats["todayResponses"] == 1
        assert stats["weekResponses"] == 2
        assert stats["monthResponses"] == 3
        assert stats["lastSubmission"] == datetime(2024, 6, 20, 1)
        assert stats["avgTimeSpent"] == 15.0
        assert overview["overview"]["averageResponsesPerForm"] == 4
        assert overview["overview"]["creationTrend"] == [{"month": "2024-03", "count": 1}]

    async def test_average_rounds_half_up(self, analytics, owner, make_form, make_response):
        first = await make_form(owner)
        await make_form(owner)
        for _ in range(3):
            await make_response(first, owner)

        overview = await analytics.management_overview(owner.id)

        assert overview["overview"]["averageResponsesPerForm"] == 2

    async def test_profile_overview(self, analytics, owner, make_form, make_response):
        form = await make_form(owner, created_at=datetime(2024, 5, 2))
        for day in range(1, 8):
            await make_response(form, owner, submitted_at=datetime(2024, 6, day + 10))

        profile = await analytics.profile_overview(owner.id)

        entry = profile["forms"][0]
        assert entry["responseCount"] == 7
        assert len(entry["recentSubmissions"]) == 5
        assert entry["recentSubmissions"][0]["submittedAt"] == datetime(2024, 6, 17)
        assert profile["statistics"]["formsByMonth"] == [{"month": "2024-05", "count": 1}]
        assert len(profile["recentActivity"]) == 7


class TestStoreFailures:

    async def test_unreachable_store_raises(self):
        def broken_factory():
            raise OperationalError("SELECT 1", {}, Exception("connection refused"))

        analytics = AnalyticsService(broken_factory, now=lambda: NOW)

        with pytest.raises(StoreUnavailableError):
            await analytics.form_analytics(1, 1)
