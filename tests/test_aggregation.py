"""
Tests for hour totals and groupings.
"""
from datetime import date

from timekeeper import aggregation
from timekeeper.models import Timesheet, TimesheetEntry, TimesheetStatus


def entry(i, hours, billable=True, project="p1", day=1, timesheet="ts1"):
    return TimesheetEntry(
        id=f"e{i}",
        timesheetId=timesheet,
        projectId=project,
        workDate=date(2024, 1, day),
        hours=hours,
        billable=billable,
    )


def test_summarize_empty():
    summary = aggregation.summarize([])
    assert summary.totalHours == 0
    assert summary.billableHours == 0
    assert summary.nonBillableHours == 0
    assert summary.entriesCount == 0


def test_summarize_splits_billable():
    entries = [entry(i, 8, billable=i != 5, day=i) for i in range(1, 6)]
    summary = aggregation.summarize(entries)
    assert summary.totalHours == 40
    assert summary.billableHours == 32
    assert summary.nonBillableHours == 8
    assert summary.entriesCount == 5
    assert summary.totalHours == summary.billableHours + summary.nonBillableHours


def test_by_project_keeps_first_appearance_order():
    entries = [
        entry(1, 2.5, project="p2"),
        entry(2, 1.25, project="p1"),
        entry(3, 0.75, project="p2", billable=False),
    ]
    groups = aggregation.by_project(entries)
    assert [g.key for g in groups] == ["p2", "p1"]
    assert groups[0].totalHours == 3.25
    assert groups[0].billableHours == 2.5
    assert groups[1].entriesCount == 1


def test_by_day():
    groups = aggregation.by_day([entry(1, 4, day=2), entry(2, 4, day=2), entry(3, 1, day=3)])
    assert [(g.key, g.totalHours) for g in groups] == [("2024-01-02", 8), ("2024-01-03", 1)]


def test_by_user_and_week_use_parent_timesheet():
    timesheets = {
        "ts1": Timesheet(id="ts1", accountId="a", organizationId="o", weekStart=date(2024, 1, 1)),
        "ts2": Timesheet(id="ts2", accountId="b", organizationId="o", weekStart=date(2024, 1, 8)),
    }
    entries = [
        entry(1, 3, timesheet="ts1"),
        entry(2, 5, timesheet="ts2", day=8),
        entry(3, 1, timesheet="orphan"),
    ]
    assert [(g.key, g.totalHours) for g in aggregation.by_user(entries, timesheets)] == [("a", 3), ("b", 5)]
    assert [g.key for g in aggregation.by_week(entries, timesheets)] == ["2024-01-01", "2024-01-08"]


def test_top_orders_by_hours():
    groups = aggregation.by_project([
        entry(1, 1, project="small"),
        entry(2, 9, project="big"),
        entry(3, 4, project="mid"),
    ])
    assert [g.key for g in aggregation.top(groups, n=2)] == ["big", "mid"]


def test_timesheet_statistics():
    timesheets = [
        Timesheet(id="ts1", accountId="a", organizationId="o", weekStart=date(2024, 1, 1),
                  status=TimesheetStatus.APPROVED),
        Timesheet(id="ts2", accountId="a", organizationId="o", weekStart=date(2024, 1, 8),
                  status=TimesheetStatus.SUBMITTED),
    ]
    summaries = {
        "ts1": aggregation.summarize([entry(1, 40)]),
        "ts2": aggregation.summarize([entry(2, 30, billable=False)]),
    }
    stats = aggregation.timesheet_statistics(timesheets, summaries)
    assert stats["totalTimesheets"] == 2
    assert stats["totalHours"] == 70
    assert stats["totalBillableHours"] == 40
    assert stats["averageHoursPerWeek"] == 35
    assert stats["statusBreakdown"] == {"draft": 0, "submitted": 1, "approved": 1, "rejected": 0}


def test_timesheet_statistics_empty():
    stats = aggregation.timesheet_statistics([], {})
    assert stats["totalTimesheets"] == 0
    assert stats["averageHoursPerWeek"] == 0.0
