"""
Registration anomaly heuristics.

Nothing here corrects data. Over-enrollment left behind by racing
registrations is reported, not fixed; ``manage.py audit_enrollments`` is
the repair path.
"""
from collections import defaultdict
from datetime import timedelta

from django.conf import settings
from django.db.models import Count
from django.utils import timezone

from users.models import User
from .models import Course, CourseEnrollment, RosterEntry

TIMEFRAMES = {
    'daily': timedelta(days=1),
    'weekly': timedelta(days=7),
    'monthly': timedelta(days=30),
}

HIGH = 'high'
MEDIUM = 'medium'

UNUSUAL_HOURS = range(0, 6)
UNUSUAL_HOUR_MIN = 5
UNUSUAL_HOUR_HIGH = 15
EXCESSIVE_REGISTRATIONS = 10
EXCESSIVE_DROPS = 5
SPIKE_MIN_RECENT = 5


def time_range(timeframe, now=None):
    now = now or timezone.now()
    return now - TIMEFRAMES.get(timeframe, TIMEFRAMES['weekly']), now


def _result(details):
    return {"detected": bool(details), "count": len(details), "details": details}


def detect_capacity_anomalies(courses, roster_counts):
    """``roster_counts`` maps course id to the number of roster entries."""
    details = []
    for course in courses:
        enrolled = roster_counts.get(course.pk, 0)
        base = {"course_id": course.pk, "course_code": course.code, "title": course.title,
                "capacity": course.max_capacity}

        if max(enrolled, course.current_enrollment) > course.max_capacity:
            details.append(dict(base, type='over_enrollment', enrolled=enrolled,
                                current_enrollment=course.current_enrollment,
                                overage=max(enrolled, course.current_enrollment) - course.max_capacity,
                                severity=HIGH))

        if enrolled != course.current_enrollment:
            details.append(dict(base, type='counter_drift', enrolled=enrolled,
                                current_enrollment=course.current_enrollment, severity=HIGH))

        if enrolled == course.max_capacity and course.max_capacity > 50:
            details.append(dict(base, type='suspicious_full_enrollment', enrolled=enrolled, severity=MEDIUM))
    return _result(details)


def detect_rapid_drops(enrollments, start, end, hours=None):
    hours = hours or settings.REGISTRATION_RAPID_DROP_HOURS
    details = []
    for record in enrollments:
        if record.status != CourseEnrollment.Status.DROPPED or record.dropped_at is None:
            continue
        if not (start <= record.dropped_at <= end):
            continue
        held = (record.dropped_at - record.enrolled_at).total_seconds() / 3600
        if held < hours:
            details.append({
                "student_id": record.student_id,
                "course_id": record.course_id,
                "enrolled_at": record.enrolled_at,
                "dropped_at": record.dropped_at,
                "hours_held": round(held, 1),
                "severity": HIGH if held < 1 else MEDIUM,
            })
    return _result(details)


def detect_mass_registrations(roster_entries, start, end, threshold=None):
    """More than ``threshold`` roster entries for one course within one clock hour."""
    threshold = threshold or settings.REGISTRATION_MASS_REGISTRATION_THRESHOLD
    groups = defaultdict(list)
    for entry in roster_entries:
        if start <= entry.enrolled_at <= end:
            hour = entry.enrolled_at.replace(minute=0, second=0, microsecond=0)
            groups[(entry.course_id, hour)].append(entry)

    details = []
    for (course_id, hour), entries in sorted(groups.items(), key=lambda item: (item[0][1], item[0][0])):
        if len(entries) > threshold:
            details.append({
                "course_id": course_id,
                "course_code": entries[0].course.code,
                "hour": hour,
                "enrollment_count": len(entries),
                "severity": HIGH if len(entries) > threshold * 2 else MEDIUM,
                "student_ids": [e.student_id for e in entries],
            })
    return _result(details)


def detect_unusual_time_patterns(roster_entries, start, end):
    """
    Registrations made between midnight and 06:00 (local time). An hour with
    more than UNUSUAL_HOUR_MIN registrations is flagged, high above
    UNUSUAL_HOUR_HIGH. The full hourly histogram is returned alongside.
    """
    hourly = defaultdict(int)
    for entry in roster_entries:
        if start <= entry.enrolled_at <= end:
            hourly[timezone.localtime(entry.enrolled_at).hour] += 1

    details = []
    for hour in UNUSUAL_HOURS:
        count = hourly.get(hour, 0)
        if count > UNUSUAL_HOUR_MIN:
            details.append({
                "hour": hour,
                "registration_count": count,
                "severity": HIGH if count > UNUSUAL_HOUR_HIGH else MEDIUM,
                "description": f"{count} registrations between {hour}:00-{hour + 1}:00",
            })
    return dict(_result(details), hourly_distribution=dict(sorted(hourly.items())))


def detect_suspicious_user_behavior(enrollments, start, end):
    """Students with many registrations, or many of those dropped, inside the window."""
    recent = defaultdict(list)
    for record in enrollments:
        if start <= record.enrolled_at <= end:
            recent[record.student_id].append(record)

    details = []
    for student_id, records in sorted(recent.items()):
        if len(records) > EXCESSIVE_REGISTRATIONS:
            details.append({
                "type": 'excessive_registrations',
                "student_id": student_id,
                "registration_count": len(records),
                "severity": HIGH if len(records) > EXCESSIVE_REGISTRATIONS * 2 else MEDIUM,
            })

        drops = sum(1 for r in records if r.dropped_at is not None)
        if drops > EXCESSIVE_DROPS:
            details.append({
                "type": 'excessive_drops',
                "student_id": student_id,
                "drop_count": drops,
                "registration_count": len(records),
                "severity": MEDIUM,
            })
    return _result(details)


def detect_course_popularity_spikes(courses, roster_counts, recent_counts):
    """
    A course whose roster is mostly recent: more than half of its entries
    (high above 80%) arrived inside the window, and more than
    SPIKE_MIN_RECENT of them.
    """
    details = []
    for course in courses:
        total = roster_counts.get(course.pk, 0)
        recent = recent_counts.get(course.pk, 0)
        if not total:
            continue
        share = recent / total
        if share > 0.5 and recent > SPIKE_MIN_RECENT:
            details.append({
                "course_id": course.pk,
                "course_code": course.code,
                "title": course.title,
                "total_enrollments": total,
                "recent_enrollments": recent,
                "spike_percentage": round(share * 100),
                "severity": HIGH if share > 0.8 else MEDIUM,
            })
    return _result(details)


def summarize(anomalies):
    summary = {"total_anomalies": 0, "high_severity": 0, "medium_severity": 0, "categories": []}
    for category, data in anomalies.items():
        if not data["detected"]:
            continue
        summary["total_anomalies"] += data["count"]
        summary["categories"].append(category)
        for detail in data["details"]:
            if detail.get("severity") == HIGH:
                summary["high_severity"] += 1
            elif detail.get("severity") == MEDIUM:
                summary["medium_severity"] += 1
    return summary


def build_report(timeframe='weekly', now=None):
    if timeframe not in TIMEFRAMES:
        timeframe = 'weekly'
    start, end = time_range(timeframe, now)

    courses = list(Course.objects.filter(is_active=True).annotate(roster_size=Count('roster')))
    roster_counts = {course.pk: course.roster_size for course in courses}
    dropped = CourseEnrollment.objects.filter(
        status=CourseEnrollment.Status.DROPPED, dropped_at__gte=start, dropped_at__lte=end
    )
    recent_roster = list(
        RosterEntry.objects.filter(enrolled_at__gte=start, enrolled_at__lte=end).select_related('course')
    )
    recent_counts = defaultdict(int)
    for entry in recent_roster:
        recent_counts[entry.course_id] += 1
    recent_records = CourseEnrollment.objects.filter(
        enrolled_at__gte=start, enrolled_at__lte=end, student__role=User.Role.STUDENT
    )

    anomalies = {
        "capacity_anomalies": detect_capacity_anomalies(courses, roster_counts),
        "rapid_drops": detect_rapid_drops(dropped, start, end),
        "mass_registrations": detect_mass_registrations(recent_roster, start, end),
        "unusual_time_patterns": detect_unusual_time_patterns(recent_roster, start, end),
        "suspicious_user_behavior": detect_suspicious_user_behavior(recent_records, start, end),
        "course_popularity_spikes": detect_course_popularity_spikes(courses, roster_counts, recent_counts),
    }
    return {
        "timeframe": timeframe,
        "detected_at": end,
        "summary": summarize(anomalies),
        "anomalies": anomalies,
    }
