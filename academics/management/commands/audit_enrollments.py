import logging

from django.core.management.base import BaseCommand

from academics.models import Course, CourseEnrollment, RosterEntry

logger = logging.getLogger(__name__)


def audit_course(course):
    """List the discrepancies between a course's counter, roster and the student ledger."""
    roster = set(RosterEntry.objects.filter(course=course).values_list('student_id', flat=True))
    ledger = set(
        CourseEnrollment.objects.filter(course=course, status=CourseEnrollment.Status.ENROLLED)
        .values_list('student_id', flat=True)
    )

    problems = []
    if course.current_enrollment != len(roster):
        problems.append(f"counter is {course.current_enrollment}, roster has {len(roster)} entries")
    if len(roster) > course.max_capacity:
        problems.append(f"roster of {len(roster)} exceeds capacity {course.max_capacity}")
    for student_id in sorted(roster - ledger):
        problems.append(f"student {student_id} on roster without an enrolled record")
    for student_id in sorted(ledger - roster):
        problems.append(f"student {student_id} has an enrolled record but no roster entry")
    return problems, len(roster)


class Command(BaseCommand):
    help = "Audit the enrollment ledger: counters, rosters and student records must agree."

    def add_arguments(self, parser):
        parser.add_argument('--fix', action='store_true',
                            help="Reset current_enrollment to the roster size. Roster/ledger mismatches are only reported.")

    def handle(self, *args, **options):
        total = 0
        for course in Course.objects.order_by('code', 'year', 'semester'):
            problems, roster_size = audit_course(course)
            for problem in problems:
                total += 1
                logger.warning("%s: %s", course.code, problem)
                self.stdout.write(f"{course.code} ({course.semester} {course.year}): {problem}")

            if options['fix'] and course.current_enrollment != roster_size:
                course.current_enrollment = roster_size
                course.save(update_fields=['current_enrollment', 'updated_at'])
                self.stdout.write(f"{course.code}: counter reset to {roster_size}")

        if total:
            self.stdout.write(self.style.WARNING(f"{total} discrepancies found"))
        else:
            self.stdout.write(self.style.SUCCESS("Enrollment ledger is consistent"))
