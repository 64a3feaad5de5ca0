"""
Registration rules.

Pure functions over a snapshot of a course and a student's enrollment
records. Nothing here touches the database; callers load the snapshot and
persist the outcome (see academics.services).
"""
from dataclasses import dataclass, field
from typing import Iterable, Optional

from django.db import models

from .models import CourseEnrollment


class DenyReason(models.TextChoices):
    NOT_FOUND = "not_found", "Course not found"
    ALREADY_ENROLLED = "already_enrolled", "Already enrolled in this course"
    FULL = "full", "Course is full"
    CONFLICT = "conflict", "Schedule conflict with enrolled courses"
    PREREQUISITES = "prerequisites_not_met", "Prerequisites not met"
    NOT_ENROLLED = "not_enrolled", "Not enrolled in this course"
    ALREADY_COMPLETED = "already_completed", "Course already completed"


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: Optional[str] = None
    conflicting_course: Optional[str] = None
    missing_prerequisites: tuple = field(default_factory=tuple)

    @property
    def message(self):
        if self.allowed:
            return ""
        return DenyReason(self.reason).label

    @property
    def is_not_found(self):
        return self.reason == DenyReason.NOT_FOUND


ALLOW = Decision(allowed=True)


def deny(reason, **details):
    return Decision(allowed=False, reason=reason, **details)


# --- Capacity & conflict primitives ---

def is_full(course):
    return course.current_enrollment >= course.max_capacity


def has_schedule_conflict(a, b):
    """
    Two courses conflict when they share a weekday and their time ranges
    overlap. Times are zero-padded "HH:MM" strings, so lexicographic
    comparison orders them correctly. Touching ranges (09:00-10:00 and
    10:00-11:00) do not overlap.
    """
    if not set(a.days or ()) & set(b.days or ()):
        return False
    return a.start_time < b.end_time and a.end_time > b.start_time


# --- Ledger lookups ---

def active_enrollment(course, enrollments: Iterable[CourseEnrollment]):
    """The student's "enrolled" record for this course, if any."""
    for record in enrollments:
        if record.course_id == course.pk and record.status == CourseEnrollment.Status.ENROLLED:
            return record
    return None


def completed_codes(enrollments):
    return {
        record.course.code.upper()
        for record in enrollments
        if record.status == CourseEnrollment.Status.COMPLETED
    }


def missing_prerequisites(course, enrollments):
    done = completed_codes(enrollments)
    return tuple(code for code in course.prerequisites if code.strip().upper() not in done)


# --- Decisions ---

def can_register(course, enrollments, check_schedule=True, check_prerequisites=True):
    """
    Decide whether a student holding ``enrollments`` may register for
    ``course``. Checks run in order and the first failure wins:
    existence, duplicate enrollment, capacity, schedule, prerequisites.

    Admin assignment passes ``check_schedule=False`` and
    ``check_prerequisites=False``; capacity and duplicates always apply.
    """
    if course is None or not course.is_active:
        return deny(DenyReason.NOT_FOUND)

    enrollments = list(enrollments)
    if active_enrollment(course, enrollments) is not None:
        return deny(DenyReason.ALREADY_ENROLLED)

    if is_full(course):
        return deny(DenyReason.FULL)

    if check_schedule:
        for record in enrollments:
            if record.status != CourseEnrollment.Status.ENROLLED or record.course_id == course.pk:
                continue
            if has_schedule_conflict(course, record.course):
                return deny(DenyReason.CONFLICT, conflicting_course=record.course.code)

    if check_prerequisites:
        missing = missing_prerequisites(course, enrollments)
        if missing:
            return deny(DenyReason.PREREQUISITES, missing_prerequisites=missing)

    return ALLOW


def can_drop(course, enrollments):
    if course is None:
        return deny(DenyReason.NOT_FOUND)
    if active_enrollment(course, enrollments) is None:
        return deny(DenyReason.NOT_ENROLLED)
    return ALLOW


def can_complete(course, enrollments):
    if course is None:
        return deny(DenyReason.NOT_FOUND)
    for record in enrollments:
        if record.course_id == course.pk and record.status == CourseEnrollment.Status.COMPLETED:
            return deny(DenyReason.ALREADY_COMPLETED)
    return ALLOW
