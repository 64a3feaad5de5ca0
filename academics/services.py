"""
Enrollment ledger operations.

A registration touches both sides of the student/course relationship: the
student's CourseEnrollment history and the course's RosterEntry list plus
its ``current_enrollment`` counter. Each operation reads a snapshot, asks
academics.rules for a Decision, and writes both sides in one transaction
with the course row locked.
"""
import logging

from django.db import DatabaseError, transaction
from django.utils import timezone

from . import rules
from .models import Course, CourseEnrollment, RosterEntry

logger = logging.getLogger(__name__)


class EnrollmentLedgerError(Exception):
    """A two-sided write failed; the ledger needs manual reconciliation."""

    def __init__(self, operation, student, course, cause):
        self.operation = operation
        self.student_id = student.pk
        self.course_id = course.pk
        super().__init__(f"{operation} failed for student {student.pk} / course {course.pk}: {cause}")


def _locked_course(course_id):
    return Course.objects.select_for_update().filter(pk=course_id).first()


def _ledger(student):
    return list(CourseEnrollment.objects.filter(student=student).select_related('course'))


def _write_registration(student, course, now):
    record = CourseEnrollment.objects.create(
        student=student, course=course, status=CourseEnrollment.Status.ENROLLED, enrolled_at=now
    )
    RosterEntry.objects.create(course=course, student=student, enrolled_at=now)
    course.current_enrollment += 1
    course.save(update_fields=['current_enrollment', 'updated_at'])
    return record


def register_for_course(student, course_id, now=None, check_schedule=True, check_prerequisites=True):
    """
    Register ``student`` for the course with ``course_id``.
    Returns ``(decision, course)``; ``course`` is None when it does not exist.
    """
    now = now or timezone.now()
    with transaction.atomic():
        course = _locked_course(course_id)
        decision = rules.can_register(
            course, _ledger(student),
            check_schedule=check_schedule, check_prerequisites=check_prerequisites,
        )
        if not decision.allowed:
            logger.info("Registration denied: student=%s course=%s reason=%s", student.pk, course_id, decision.reason)
            return decision, course

        try:
            with transaction.atomic():
                _write_registration(student, course, now)
        except DatabaseError as exc:
            logger.critical("Enrollment ledger write failed during registration: student=%s course=%s",
                            student.pk, course.pk, exc_info=True)
            raise EnrollmentLedgerError("register", student, course, exc) from exc

    logger.info("Student %s registered for %s (%d/%d)",
                student.pk, course.code, course.current_enrollment, course.max_capacity)
    return decision, course


def assign_course(student, course_id, now=None):
    """Admin assignment: capacity and duplicates still apply, schedule and prerequisites do not."""
    return register_for_course(student, course_id, now=now, check_schedule=False, check_prerequisites=False)


def drop_course(student, course_id, now=None):
    """
    Drop ``student`` from the course. The student's record is kept with
    status "dropped"; the roster entry is deleted; the counter never goes
    below zero. Returns ``(decision, course)``.
    """
    now = now or timezone.now()
    with transaction.atomic():
        course = _locked_course(course_id)
        enrollments = _ledger(student)
        decision = rules.can_drop(course, enrollments)
        if not decision.allowed:
            logger.info("Drop denied: student=%s course=%s reason=%s", student.pk, course_id, decision.reason)
            return decision, course

        record = rules.active_enrollment(course, enrollments)
        try:
            with transaction.atomic():
                record.status = CourseEnrollment.Status.DROPPED
                record.dropped_at = now
                record.save(update_fields=['status', 'dropped_at'])
                RosterEntry.objects.filter(course=course, student=student).delete()
                course.current_enrollment = max(0, course.current_enrollment - 1)
                course.save(update_fields=['current_enrollment', 'updated_at'])
        except DatabaseError as exc:
            logger.critical("Enrollment ledger write failed during drop: student=%s course=%s",
                            student.pk, course.pk, exc_info=True)
            raise EnrollmentLedgerError("drop", student, course, exc) from exc

    logger.info("Student %s dropped %s (%d/%d)",
                student.pk, course.code, course.current_enrollment, course.max_capacity)
    return decision, course


def complete_course(student, course_id, grade="", now=None):
    """
    Mark the course completed for ``student``. An active record is flipped
    to "completed" and, as with a drop, the student leaves the roster and
    the counter goes down by one (never below zero). Without an active
    record a completed record is appended (credit earned elsewhere or in an
    earlier term) and the course side is untouched.
    Returns ``(decision, course)``.
    """
    now = now or timezone.now()
    with transaction.atomic():
        course = _locked_course(course_id)
        enrollments = _ledger(student)
        decision = rules.can_complete(course, enrollments)
        if not decision.allowed:
            logger.info("Completion denied: student=%s course=%s reason=%s", student.pk, course_id, decision.reason)
            return decision, course

        record = rules.active_enrollment(course, enrollments)
        try:
            with transaction.atomic():
                if record is None:
                    CourseEnrollment.objects.create(
                        student=student, course=course, status=CourseEnrollment.Status.COMPLETED,
                        enrolled_at=now, completed_at=now, grade=grade or "",
                    )
                else:
                    record.status = CourseEnrollment.Status.COMPLETED
                    record.completed_at = now
                    record.grade = grade or ""
                    record.save(update_fields=['status', 'completed_at', 'grade'])
                    RosterEntry.objects.filter(course=course, student=student).delete()
                    course.current_enrollment = max(0, course.current_enrollment - 1)
                    course.save(update_fields=['current_enrollment', 'updated_at'])
        except DatabaseError as exc:
            logger.critical("Enrollment ledger write failed during completion: student=%s course=%s",
                            student.pk, course.pk, exc_info=True)
            raise EnrollmentLedgerError("complete", student, course, exc) from exc

    logger.info("Student %s completed %s (%d/%d)",
                student.pk, course.code, course.current_enrollment, course.max_capacity)
    return decision, course
