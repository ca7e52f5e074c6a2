"""
Pure aggregation over already-fetched entries. No I/O.
"""
from __future__ import annotations
from typing import Callable, Dict, Iterable, List, Mapping, Sequence

from timekeeper.models import GroupTotal, HoursSummary, Timesheet, TimesheetEntry, TimesheetStatus


def _round(value: float) -> float:
    # float sums of quarter hours drift; two decimals is what gets displayed
    return round(value, 2)


def summarize(entries: Iterable[TimesheetEntry]) -> HoursSummary:
    total = 0.0
    billable = 0.0
    count = 0
    for entry in entries:
        total += entry.hours
        if entry.billable:
            billable += entry.hours
        count += 1
    return HoursSummary(
        totalHours=_round(total),
        billableHours=_round(billable),
        nonBillableHours=_round(total - billable),
        entriesCount=count,
    )


def group_totals(
    entries: Iterable[TimesheetEntry],
    key: Callable[[TimesheetEntry], str],
) -> List[GroupTotal]:
    """Group-by-and-sum, groups in order of first appearance."""
    groups: Dict[str, List[TimesheetEntry]] = {}
    for entry in entries:
        groups.setdefault(key(entry), []).append(entry)
    return [GroupTotal(key=k, **summarize(v).model_dump()) for k, v in groups.items()]


def by_project(entries: Iterable[TimesheetEntry]) -> List[GroupTotal]:
    return group_totals(entries, lambda e: e.projectId)


def by_day(entries: Iterable[TimesheetEntry]) -> List[GroupTotal]:
    return group_totals(entries, lambda e: e.workDate.isoformat())


def by_user(
    entries: Iterable[TimesheetEntry],
    timesheets: Mapping[str, Timesheet],
) -> List[GroupTotal]:
    """Entries are attributed to the owner of their parent timesheet."""
    return group_totals(
        (e for e in entries if e.timesheetId in timesheets),
        lambda e: timesheets[e.timesheetId].accountId,
    )


def by_week(
    entries: Iterable[TimesheetEntry],
    timesheets: Mapping[str, Timesheet],
) -> List[GroupTotal]:
    return group_totals(
        (e for e in entries if e.timesheetId in timesheets),
        lambda e: timesheets[e.timesheetId].weekStart.isoformat(),
    )


def top(groups: Sequence[GroupTotal], n: int = 5) -> List[GroupTotal]:
    """Largest groups by total hours; ties keep input order."""
    return sorted(groups, key=lambda g: -g.totalHours)[:n]


def timesheet_statistics(
    timesheets: Sequence[Timesheet],
    summaries: Mapping[str, HoursSummary],
) -> dict:
    """Totals across several timesheets, as shown on a staff member's history."""
    breakdown = {status.value: 0 for status in TimesheetStatus}
    total = 0.0
    billable = 0.0
    for ts in timesheets:
        breakdown[TimesheetStatus(ts.status).value] += 1
        summary = summaries.get(ts.id)
        if summary:
            total += summary.totalHours
            billable += summary.billableHours

    return {
        "totalTimesheets": len(timesheets),
        "totalHours": _round(total),
        "totalBillableHours": _round(billable),
        "averageHoursPerWeek": _round(total / len(timesheets)) if timesheets else 0.0,
        "statusBreakdown": breakdown,
    }


def roster_statistics(rows: Sequence[dict]) -> dict:
    """
    Completion and hours across a weekly roster. Each row carries the
    staff member's week under "currentWeekTimesheet", or None.
    """
    breakdown = {status.value: 0 for status in TimesheetStatus}
    breakdown["none"] = 0
    total = 0.0
    billable = 0.0
    with_timesheets = 0
    for row in rows:
        week = row["currentWeekTimesheet"]
        if week is None:
            breakdown["none"] += 1
            continue
        with_timesheets += 1
        breakdown[week["status"]] += 1
        total += week["totalHours"]
        billable += week["billableHours"]

    return {
        "totalStaff": len(rows),
        "withTimesheets": with_timesheets,
        "completionRate": round(with_timesheets * 100 / len(rows)) if rows else 0,
        "totalHours": _round(total),
        "totalBillableHours": _round(billable),
        "statusBreakdown": breakdown,
    }
