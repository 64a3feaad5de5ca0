from datetime import datetime, timedelta
from io import StringIO
from unittest import mock

from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.db import DatabaseError
from django.test import SimpleTestCase, TestCase
from django.urls import reverse
from django.utils import timezone

from users.models import StudentProfile
from academics import anomalies, recommendations, rules, services, workload
from academics.models import Course, CourseEnrollment, RosterEntry

User = get_user_model()

def make_course(**overrides):
    fields = dict(
        code="CS101", title="Introduction to Computer Science", department="Computer Science",
        instructor="Dr. Smith", days=["Monday", "Wednesday", "Friday"], start_time="09:00",
        end_time="10:00", room="CS-101", semester=Course.Semester.FALL, year=2024, max_capacity=30,
    )
    fields.update(overrides)
    return Course(**fields)

def create_course(**overrides):
    course = make_course(**overrides)
    course.save()
    return course

def record(course, status=CourseEnrollment.Status.ENROLLED, **extra):
    return CourseEnrollment(course=course, status=status, **extra)

class SchedulePrimitiveTests(SimpleTestCase):
    def setUp(self):
        self.a = make_course(id=1, code="CS101", days=["Monday", "Wednesday"], start_time="09:00", end_time="10:00")
        self.b = make_course(id=2, code="MATH101", days=["Wednesday", "Friday"], start_time="09:30", end_time="10:30")

    def test_overlap_on_shared_day(self):
        """Mon/Wed 09:00-10:00 and Wed/Fri 09:30-10:30 collide on Wednesday"""
        self.assertTrue(rules.has_schedule_conflict(self.a, self.b))

    def test_conflict_is_symmetric(self):
        pairs = [
            (self.a, self.b),
            (self.a, make_course(id=3, days=["Monday"], start_time="10:00", end_time="11:00")),
            (self.b, make_course(id=4, days=["Tuesday"], start_time="09:00", end_time="12:00")),
            (self.a, make_course(id=5, days=["Monday"], start_time="08:00", end_time="12:00")),
        ]
        for x, y in pairs:
            self.assertEqual(rules.has_schedule_conflict(x, y), rules.has_schedule_conflict(y, x))

    def test_back_to_back_courses_do_not_conflict(self):
        later = make_course(id=3, days=["Monday"], start_time="10:00", end_time="11:00")
        self.assertFalse(rules.has_schedule_conflict(self.a, later))

    def test_no_shared_day_means_no_conflict(self):
        tuesday = make_course(id=3, days=["Tuesday", "Thursday"], start_time="09:00", end_time="10:00")
        self.assertFalse(rules.has_schedule_conflict(self.a, tuesday))

    def test_is_full(self):
        self.assertFalse(rules.is_full(make_course(max_capacity=2, current_enrollment=1)))
        self.assertTrue(rules.is_full(make_course(max_capacity=2, current_enrollment=2)))
        # Over-enrolled courses stay full
        self.assertTrue(make_course(max_capacity=2, current_enrollment=3).is_full())

class RegistrationRuleTests(SimpleTestCase):
    def setUp(self):
        self.course = make_course(id=10, code="CS201", days=["Tuesday"], start_time="11:00", end_time="12:30")

    def test_missing_or_inactive_course_is_not_found(self):
        self.assertEqual(rules.can_register(None, []).reason, rules.DenyReason.NOT_FOUND)
        self.course.is_active = False
        decision = rules.can_register(self.course, [])
        self.assertFalse(decision.allowed)
        self.assertTrue(decision.is_not_found)

    def test_already_enrolled(self):
        decision = rules.can_register(self.course, [record(self.course)])
        self.assertEqual(decision.reason, rules.DenyReason.ALREADY_ENROLLED)
        self.assertEqual(decision.message, "Already enrolled in this course")

    def test_dropped_record_does_not_block_reregistration(self):
        decision = rules.can_register(self.course, [record(self.course, CourseEnrollment.Status.DROPPED)])
        self.assertTrue(decision.allowed)

    def test_full_course(self):
        self.course.max_capacity = 1
        self.course.current_enrollment = 1
        self.assertEqual(rules.can_register(self.course, []).reason, rules.DenyReason.FULL)

    def test_duplicate_check_runs_before_capacity(self):
        self.course.max_capacity = 1
        self.course.current_enrollment = 1
        decision = rules.can_register(self.course, [record(self.course)])
        self.assertEqual(decision.reason, rules.DenyReason.ALREADY_ENROLLED)

    def test_schedule_conflict_names_the_other_course(self):
        other = make_course(id=11, code="PHYS101", days=["Tuesday"], start_time="12:00", end_time="13:30")
        decision = rules.can_register(self.course, [record(other)])
        self.assertEqual(decision.reason, rules.DenyReason.CONFLICT)
        self.assertEqual(decision.conflicting_course, "PHYS101")

    def test_dropped_and_completed_courses_never_conflict(self):
        other = make_course(id=11, code="PHYS101", days=["Tuesday"], start_time="12:00", end_time="13:30")
        enrollments = [record(other, CourseEnrollment.Status.DROPPED), record(other, CourseEnrollment.Status.COMPLETED)]
        self.assertTrue(rules.can_register(self.course, enrollments).allowed)

    def test_prerequisites_matched_by_completed_course_code(self):
        self.course.prerequisites = ["CS101"]
        cs101 = make_course(id=12, code="CS101")

        decision = rules.can_register(self.course, [])
        self.assertEqual(decision.reason, rules.DenyReason.PREREQUISITES)
        self.assertEqual(decision.missing_prerequisites, ("CS101",))

        # Enrolled but not completed is not enough
        self.assertFalse(rules.can_register(self.course, [record(cs101)]).allowed)
        self.assertTrue(rules.can_register(self.course, [record(cs101, CourseEnrollment.Status.COMPLETED)]).allowed)

    def test_prerequisite_codes_are_case_insensitive(self):
        self.course.prerequisites = ["cs101"]
        cs101 = make_course(id=12, code="CS101")
        self.assertTrue(rules.can_register(self.course, [record(cs101, CourseEnrollment.Status.COMPLETED)]).allowed)

    def test_admin_assignment_skips_schedule_and_prerequisites(self):
        self.course.prerequisites = ["CS101"]
        other = make_course(id=11, code="PHYS101", days=["Tuesday"], start_time="12:00", end_time="13:30")
        decision = rules.can_register(self.course, [record(other)], check_schedule=False, check_prerequisites=False)
        self.assertTrue(decision.allowed)

    def test_can_drop(self):
        self.assertEqual(rules.can_drop(None, []).reason, rules.DenyReason.NOT_FOUND)
        self.assertEqual(rules.can_drop(self.course, []).reason, rules.DenyReason.NOT_ENROLLED)
        dropped = [record(self.course, CourseEnrollment.Status.DROPPED)]
        self.assertEqual(rules.can_drop(self.course, dropped).reason, rules.DenyReason.NOT_ENROLLED)
        self.assertTrue(rules.can_drop(self.course, [record(self.course)]).allowed)

class EnrollmentLedgerTests(TestCase):
    def setUp(self):
        self.s1 = User.objects.create_user(username='s1', email='s1@test.com', password='password')
        self.s2 = User.objects.create_user(username='s2', email='s2@test.com', password='password')
        self.s3 = User.objects.create_user(username='s3', email='s3@test.com', password='password')

    def assertLedgerConsistent(self, course):
        course.refresh_from_db()
        self.assertEqual(course.current_enrollment, course.roster.count())
        self.assertEqual(
            course.roster.count(),
            CourseEnrollment.objects.filter(course=course, status=CourseEnrollment.Status.ENROLLED).count(),
        )

    def test_single_seat_walkthrough(self):
        """Register, deny when full, drop, re-register with a new record"""
        course = create_course(code="C100", max_capacity=1)

        decision, _ = services.register_for_course(self.s1, course.id)
        self.assertTrue(decision.allowed)
        course.refresh_from_db()
        self.assertEqual(course.current_enrollment, 1)

        decision, _ = services.register_for_course(self.s2, course.id)
        self.assertEqual(decision.reason, rules.DenyReason.FULL)

        decision, _ = services.drop_course(self.s1, course.id)
        self.assertTrue(decision.allowed)
        course.refresh_from_db()
        self.assertEqual(course.current_enrollment, 0)
        first = CourseEnrollment.objects.get(student=self.s1, course=course)
        self.assertEqual(first.status, CourseEnrollment.Status.DROPPED)
        self.assertIsNotNone(first.dropped_at)
        self.assertFalse(RosterEntry.objects.filter(course=course, student=self.s1).exists())

        decision, _ = services.register_for_course(self.s1, course.id)
        self.assertTrue(decision.allowed)
        history = list(CourseEnrollment.objects.filter(student=self.s1, course=course).order_by('id'))
        self.assertEqual([r.status for r in history], ["dropped", "enrolled"])
        self.assertEqual(history[0].pk, first.pk)
        self.assertLedgerConsistent(course)

    def test_register_twice_is_denied(self):
        course = create_course()
        services.register_for_course(self.s1, course.id)
        decision, _ = services.register_for_course(self.s1, course.id)
        self.assertEqual(decision.reason, rules.DenyReason.ALREADY_ENROLLED)
        self.assertLedgerConsistent(course)
        self.assertEqual(course.current_enrollment, 1)

    def test_drop_decrements_by_exactly_one(self):
        course = create_course()
        services.register_for_course(self.s1, course.id)
        services.register_for_course(self.s2, course.id)
        services.drop_course(self.s1, course.id)
        course.refresh_from_db()
        self.assertEqual(course.current_enrollment, 1)
        self.assertEqual(list(course.roster.values_list('student_id', flat=True)), [self.s2.id])

    def test_drop_never_goes_below_zero(self):
        course = create_course()
        # Counter already drifted to zero while a ledger record exists
        CourseEnrollment.objects.create(student=self.s1, course=course)
        decision, _ = services.drop_course(self.s1, course.id)
        self.assertTrue(decision.allowed)
        course.refresh_from_db()
        self.assertEqual(course.current_enrollment, 0)

    def test_drop_without_enrollment(self):
        course = create_course()
        decision, _ = services.drop_course(self.s1, course.id)
        self.assertEqual(decision.reason, rules.DenyReason.NOT_ENROLLED)
        decision, course = services.drop_course(self.s1, 9999)
        self.assertTrue(decision.is_not_found)
        self.assertIsNone(course)

    def test_counter_matches_roster_after_serial_operations(self):
        courses = [
            create_course(code="A100", days=["Monday"], start_time="08:00", end_time="09:00", max_capacity=2),
            create_course(code="B100", days=["Tuesday"], start_time="08:00", end_time="09:00", max_capacity=1),
            create_course(code="C100", days=["Monday"], start_time="08:30", end_time="09:30", max_capacity=3),
        ]
        a, b, c = (course.id for course in courses)
        steps = [
            (services.register_for_course, self.s1, a), (services.register_for_course, self.s2, a),
            (services.register_for_course, self.s3, a), (services.register_for_course, self.s1, b),
            (services.register_for_course, self.s2, b), (services.register_for_course, self.s1, c),
            (services.drop_course, self.s1, a), (services.register_for_course, self.s1, c),
            (services.register_for_course, self.s3, a), (services.drop_course, self.s2, b),
            (services.drop_course, self.s2, b), (services.register_for_course, self.s2, b),
            (services.register_for_course, self.s3, c), (services.drop_course, self.s3, a),
        ]
        for operation, student, course_id in steps:
            operation(student, course_id)
            for course in courses:
                self.assertLedgerConsistent(course)

    def test_prerequisite_completion_unlocks_registration(self):
        cs101 = create_course(code="CS101")
        advanced = create_course(code="CS301", days=["Thursday"], prerequisites=["CS101"])

        decision, _ = services.register_for_course(self.s1, advanced.id)
        self.assertEqual(decision.reason, rules.DenyReason.PREREQUISITES)

        decision, _ = services.complete_course(self.s1, cs101.id, grade="A")
        self.assertTrue(decision.allowed)
        completed = CourseEnrollment.objects.get(student=self.s1, course=cs101)
        self.assertEqual(completed.status, CourseEnrollment.Status.COMPLETED)
        self.assertEqual(completed.grade, "A")

        decision, _ = services.register_for_course(self.s1, advanced.id)
        self.assertTrue(decision.allowed)

    def test_completing_an_active_enrollment(self):
        """Completion frees the seat: roster entry removed, counter decremented"""
        course = create_course(max_capacity=1)
        services.register_for_course(self.s1, course.id)
        services.complete_course(self.s1, course.id)
        self.assertEqual(CourseEnrollment.objects.filter(student=self.s1, course=course).count(), 1)
        self.assertEqual(CourseEnrollment.objects.get(student=self.s1, course=course).status, "completed")
        self.assertFalse(RosterEntry.objects.filter(course=course, student=self.s1).exists())
        self.assertLedgerConsistent(course)
        self.assertEqual(course.current_enrollment, 0)

        decision, _ = services.register_for_course(self.s2, course.id)
        self.assertTrue(decision.allowed)

        decision, _ = services.complete_course(self.s1, course.id)
        self.assertEqual(decision.reason, rules.DenyReason.ALREADY_COMPLETED)

    def test_complete_then_register_again(self):
        """A student can retake a completed course"""
        course = create_course()
        services.register_for_course(self.s1, course.id)
        services.complete_course(self.s1, course.id, grade="D")

        decision, _ = services.register_for_course(self.s1, course.id)
        self.assertTrue(decision.allowed)
        history = list(CourseEnrollment.objects.filter(student=self.s1, course=course).order_by('id'))
        self.assertEqual([r.status for r in history], ["completed", "enrolled"])
        self.assertTrue(RosterEntry.objects.filter(course=course, student=self.s1).exists())
        self.assertLedgerConsistent(course)
        self.assertEqual(course.current_enrollment, 1)

    def test_completion_without_enrollment_leaves_course_side_alone(self):
        course = create_course()
        services.register_for_course(self.s2, course.id)
        decision, _ = services.complete_course(self.s1, course.id, grade="A")
        self.assertTrue(decision.allowed)
        self.assertLedgerConsistent(course)
        self.assertEqual(course.current_enrollment, 1)

    def test_failed_completion_raises_ledger_error(self):
        course = create_course()
        services.register_for_course(self.s1, course.id)
        with mock.patch.object(RosterEntry.objects, 'filter', side_effect=DatabaseError("disk full")):
            with self.assertLogs('academics.services', level='CRITICAL'):
                with self.assertRaises(services.EnrollmentLedgerError):
                    services.complete_course(self.s1, course.id)

        self.assertEqual(CourseEnrollment.objects.get(student=self.s1, course=course).status, "enrolled")
        self.assertLedgerConsistent(course)

    def test_assign_course_ignores_prerequisites_but_not_capacity(self):
        course = create_course(prerequisites=["MATH999"], max_capacity=1)
        decision, _ = services.assign_course(self.s1, course.id)
        self.assertTrue(decision.allowed)
        decision, _ = services.assign_course(self.s2, course.id)
        self.assertEqual(decision.reason, rules.DenyReason.FULL)

    def test_failed_write_raises_ledger_error_and_alerts(self):
        course = create_course()
        with mock.patch.object(RosterEntry.objects, 'create', side_effect=DatabaseError("disk full")):
            with self.assertLogs('academics.services', level='CRITICAL'):
                with self.assertRaises(services.EnrollmentLedgerError):
                    services.register_for_course(self.s1, course.id)

        self.assertFalse(CourseEnrollment.objects.filter(student=self.s1).exists())
        self.assertLedgerConsistent(course)

class RecommendationTests(SimpleTestCase):
    def student(self, **profile):
        user = User(id=1, username='rec')
        StudentProfile(user=user, **profile)
        return user

    def test_score_sums_bonuses(self):
        """History major, low GPA, junior: foundational bonus minus unmet prerequisite penalty"""
        student = self.student(major="History", gpa=2.0, year="junior")
        course = make_course(id=1, code="MATH101", department="Mathematics", prerequisites=["MATH099"])
        self.assertEqual(recommendations.score_course(course, student, []), 60)

    def test_related_department(self):
        student = self.student(major="Mathematics", gpa=3.6, year="senior")
        course = make_course(id=1, code="PHYS210", department="Physics", current_enrollment=12, max_capacity=30)
        self.assertEqual(recommendations.score_course(course, student, []), 95)

    def test_score_is_clamped(self):
        student = self.student(major="Computer Science", gpa=3.0, year="sophomore")
        course = make_course(id=1, code="CS201", difficulty=Course.Difficulty.INTERMEDIATE,
                             current_enrollment=5, max_capacity=10)
        self.assertEqual(recommendations.score_course(course, student, []), 100)

    def test_student_without_profile(self):
        course = make_course(id=1, code="ENG200", department="English")
        score = recommendations.score_course(course, User(username='bare'), [])
        # base + prerequisites met
        self.assertEqual(score, 50 + 15)

    def test_ranking_excludes_active_courses_and_keeps_tie_order(self):
        student = self.student(major="English", gpa=2.0, year="freshman")
        enrolled = make_course(id=1, code="ENG101", department="English")
        tie_a = make_course(id=2, code="ART200", department="Art")
        tie_b = make_course(id=3, code="MUS200", department="Music")
        best = make_course(id=4, code="ENG102", department="English")

        results = recommendations.recommend_courses(student, [enrolled, tie_a, tie_b, best], [record(enrolled)])
        self.assertEqual([r.course.code for r in results], ["ENG102", "ART200", "MUS200"])
        self.assertEqual([r.score for r in results], sorted((r.score for r in results), reverse=True))
        self.assertIn("Perfect match for your English major", results[0].reasons)

    def test_limit(self):
        student = self.student()
        courses = [make_course(id=i, code=f"GEN{i}00") for i in range(1, 8)]
        self.assertEqual(len(recommendations.recommend_courses(student, courses, [], limit=3)), 3)

class AnomalyTests(SimpleTestCase):
    def test_capacity_anomalies(self):
        over = make_course(id=1, code="OVER1", max_capacity=2, current_enrollment=3)
        drift = make_course(id=2, code="DRIFT1", max_capacity=5, current_enrollment=4)
        fine = make_course(id=3, code="FINE1", max_capacity=5, current_enrollment=2)
        result = anomalies.detect_capacity_anomalies([over, drift, fine], {1: 3, 2: 3, 3: 2})

        types = [(d["course_code"], d["type"]) for d in result["details"]]
        self.assertEqual(types, [("OVER1", "over_enrollment"), ("DRIFT1", "counter_drift")])
        self.assertEqual(result["details"][0]["overage"], 1)

    def test_rapid_drops(self):
        now = timezone.now()
        course = make_course(id=1)
        quick = record(course, CourseEnrollment.Status.DROPPED, student_id=1,
                       enrolled_at=now - timedelta(minutes=30), dropped_at=now)
        slow = record(course, CourseEnrollment.Status.DROPPED, student_id=2,
                      enrolled_at=now - timedelta(days=3), dropped_at=now)
        result = anomalies.detect_rapid_drops([quick, slow], now - timedelta(days=7), now, hours=24)
        self.assertEqual(result["count"], 1)
        self.assertEqual(result["details"][0]["severity"], "high")

    def test_summary_counts_severities(self):
        report = {
            "a": {"detected": True, "count": 2, "details": [{"severity": "high"}, {"severity": "medium"}]},
            "b": {"detected": False, "count": 0, "details": []},
        }
        summary = anomalies.summarize(report)
        self.assertEqual(summary, {"total_anomalies": 2, "high_severity": 1, "medium_severity": 1, "categories": ["a"]})

    def test_unknown_timeframe_falls_back_to_weekly(self):
        now = timezone.now()
        start, end = anomalies.time_range('yearly', now)
        self.assertEqual(end - start, timedelta(days=7))

    # --- Feature: Mass registrations ---
    def roster(self, course, count, first_at, first_student=1):
        return [
            RosterEntry(course=course, student_id=first_student + i, enrolled_at=first_at + timedelta(minutes=i))
            for i in range(count)
        ]

    def test_mass_registrations_threshold_and_severity(self):
        hour = timezone.make_aware(datetime(2024, 9, 2, 10))
        cs101 = make_course(id=1, code="CS101")
        math101 = make_course(id=2, code="MATH101")
        entries = (
            self.roster(cs101, 4, hour)                           # one over the threshold
            + self.roster(math101, 3, hour)                       # exactly at the threshold
            + self.roster(cs101, 7, hour + timedelta(hours=1))    # above twice the threshold
        )
        result = anomalies.detect_mass_registrations(entries, hour - timedelta(days=1), hour + timedelta(days=1),
                                                     threshold=3)

        summary = [(d["course_code"], d["hour"], d["enrollment_count"], d["severity"]) for d in result["details"]]
        self.assertEqual(summary, [
            ("CS101", hour, 4, "medium"),
            ("CS101", hour + timedelta(hours=1), 7, "high"),
        ])
        self.assertEqual(result["details"][0]["student_ids"], [1, 2, 3, 4])

    def test_mass_registrations_group_by_clock_hour(self):
        """Four registrations straddling 11:00 are two groups of two"""
        eleven = timezone.make_aware(datetime(2024, 9, 2, 11))
        course = make_course(id=1)
        start, end = eleven - timedelta(hours=1), eleven + timedelta(hours=1)

        entries = self.roster(course, 2, eleven - timedelta(minutes=2)) + self.roster(course, 2, eleven, first_student=3)
        self.assertFalse(anomalies.detect_mass_registrations(entries, start, end, threshold=3)["detected"])

        same_hour = self.roster(course, 4, eleven)
        self.assertTrue(anomalies.detect_mass_registrations(same_hour, start, end, threshold=3)["detected"])

    def test_mass_registrations_outside_window_are_ignored(self):
        hour = timezone.make_aware(datetime(2024, 9, 2, 10))
        entries = self.roster(make_course(id=1), 5, hour)
        result = anomalies.detect_mass_registrations(entries, hour + timedelta(hours=1), hour + timedelta(days=1),
                                                     threshold=3)
        self.assertEqual(result["count"], 0)

    # --- Feature: Time-of-day, student behaviour and popularity spikes ---
    def test_unusual_time_patterns(self):
        day = timezone.make_aware(datetime(2024, 9, 2))
        course = make_course(id=1)
        entries = (
            self.roster(course, 6, day + timedelta(hours=2))
            + self.roster(course, 16, day + timedelta(hours=3))
            + self.roster(course, 5, day + timedelta(hours=4))
            + self.roster(course, 20, day + timedelta(hours=14))
        )
        result = anomalies.detect_unusual_time_patterns(entries, day, day + timedelta(days=1))

        self.assertEqual([(d["hour"], d["severity"]) for d in result["details"]], [(2, "medium"), (3, "high")])
        self.assertEqual(result["details"][0]["description"], "6 registrations between 2:00-3:00")
        self.assertEqual(result["hourly_distribution"], {2: 6, 3: 16, 4: 5, 14: 20})

    def test_suspicious_user_behavior(self):
        now = timezone.now()
        course = make_course(id=1)

        def history(student_id, count, dropped=False):
            return [
                record(course, CourseEnrollment.Status.DROPPED if dropped else CourseEnrollment.Status.ENROLLED,
                       student_id=student_id, enrolled_at=now - timedelta(hours=i + 1),
                       dropped_at=now if dropped else None)
                for i in range(count)
            ]

        enrollments = history(1, 11) + history(2, 21) + history(3, 6, dropped=True) + history(4, 10)
        result = anomalies.detect_suspicious_user_behavior(enrollments, now - timedelta(days=7), now)

        self.assertEqual([(d["student_id"], d["type"], d["severity"]) for d in result["details"]], [
            (1, "excessive_registrations", "medium"),
            (2, "excessive_registrations", "high"),
            (3, "excessive_drops", "medium"),
        ])
        self.assertEqual(result["details"][2]["drop_count"], 6)

    def test_course_popularity_spikes(self):
        courses = [make_course(id=1, code="HOT1"), make_course(id=2, code="WARM1"),
                   make_course(id=3, code="SMALL1"), make_course(id=4, code="EMPTY1")]
        result = anomalies.detect_course_popularity_spikes(courses, {1: 10, 2: 10, 3: 5}, {1: 9, 2: 6, 3: 5})

        self.assertEqual(
            [(d["course_code"], d["spike_percentage"], d["severity"]) for d in result["details"]],
            [("HOT1", 90, "high"), ("WARM1", 60, "medium")],
        )

class AnomalyReportTests(TestCase):
    def test_unknown_timeframe_reports_weekly(self):
        now = timezone.now()
        report = anomalies.build_report('yearly', now=now)
        self.assertEqual(report['timeframe'], "weekly")
        self.assertEqual(report['detected_at'], now)
        self.assertEqual(sorted(report['anomalies']), [
            "capacity_anomalies", "course_popularity_spikes", "mass_registrations",
            "rapid_drops", "suspicious_user_behavior", "unusual_time_patterns",
        ])
        self.assertEqual(report['summary']['total_anomalies'], 0)

    def test_popularity_spike_from_database(self):
        course = create_course(max_capacity=50)
        for i in range(6):
            student = User.objects.create_user(username=f'spike{i}', email=f'spike{i}@test.com', password='password')
            services.register_for_course(student, course.id)

        report = anomalies.build_report('daily')
        spikes = report['anomalies']['course_popularity_spikes']
        self.assertEqual([(d['course_code'], d['spike_percentage']) for d in spikes['details']], [("CS101", 100)])
        self.assertIn("course_popularity_spikes", report['summary']['categories'])

class WorkloadTests(SimpleTestCase):
    def student(self, **profile):
        user = User(id=5, username='load', first_name='Ada', last_name='Lovelace')
        StudentProfile(user=user, **profile)
        return user

    def enrolled(self, *credits, **fields):
        return [make_course(id=100 + i, code=f"GEN{i}00", credits=c, **fields) for i, c in enumerate(credits)]

    def test_workload_impact_levels(self):
        current = self.enrolled(4, 4, 4)
        light = workload.calculate_workload_impact(make_course(credits=3), current)
        self.assertEqual((light["impact"], light["current_credits"], light["new_total_credits"]), ("Low", 12, 15))
        self.assertEqual(light["recommendation"], "Light course load - consider adding another course")

        standard = workload.calculate_workload_impact(make_course(credits=4), current)
        self.assertEqual(standard["impact"], "Medium")
        self.assertEqual(standard["recommendation"], "Standard full-time course load")

        heavy = self.enrolled(4, 4, 4, 4)
        self.assertEqual(workload.calculate_workload_impact(make_course(credits=3), heavy, gpa=3.6)["recommendation"],
                         "Heavy load but manageable with your strong GPA")
        self.assertEqual(workload.calculate_workload_impact(make_course(credits=3), heavy, gpa=3.0)["recommendation"],
                         "Consider reducing course load for better academic performance")

    def test_missing_credits_count_as_three(self):
        self.assertEqual(workload.credits_of(make_course(credits=0)), 3)

    def test_optimization_score(self):
        self.assertEqual(workload.optimization_score([], {"impact": "Low", "new_total_credits": 15}), 100)
        self.assertEqual(workload.optimization_score([], {"impact": "Medium", "new_total_credits": 17}), 100)
        self.assertEqual(workload.optimization_score(["x"], {"impact": "High", "new_total_credits": 19}), 50)
        self.assertEqual(workload.optimization_score(["x"] * 4, {"impact": "High", "new_total_credits": 21}), 0)

    def test_schedule_optimization_ranks_conflicts_last(self):
        cs101 = make_course(id=1, code="CS101", days=["Monday", "Wednesday"], start_time="09:00", end_time="10:00")
        math101 = make_course(id=2, code="MATH101", days=["Wednesday", "Friday"], start_time="09:30", end_time="10:30")
        eng200 = make_course(id=3, code="ENG200", days=["Tuesday"], start_time="09:00", end_time="10:00")

        options = workload.analyze_schedule_optimization(
            User(username='opt'), [math101, cs101, eng200], [record(cs101)]
        )
        self.assertEqual([(o.course.code, o.score) for o in options],
                         [("CS101", 95), ("ENG200", 95), ("MATH101", 65)])
        self.assertEqual([c.code for c in options[-1].conflicts], ["CS101"])
        self.assertEqual(options[-1].workload["new_total_credits"], 6)

    def test_load_status(self):
        self.assertEqual(workload.load_status(19, 3.5), "Overloaded")
        self.assertEqual(workload.load_status(9, 3.0), "Underloaded")
        self.assertEqual(workload.load_status(15, 2.0), "At Risk")
        self.assertEqual(workload.load_status(15, 3.0), "Normal")
        self.assertEqual(workload.load_status(12, 2.0), "Normal")

    def test_student_load_analysis(self):
        student = self.student(gpa=2.8)
        advanced = self.enrolled(6, 6, 6, difficulty=Course.Difficulty.ADVANCED)
        enrollments = [record(c) for c in advanced] + [record(make_course(id=9, code="OLD100"),
                                                              CourseEnrollment.Status.DROPPED)]

        analysis = workload.analyze_student_load(student, enrollments)
        self.assertEqual(analysis["student_name"], "Ada Lovelace")
        self.assertEqual((analysis["total_credits"], analysis["course_count"]), (18, 3))
        self.assertEqual(analysis["load_status"], "Normal")
        self.assertEqual(analysis["recommendations"],
                         ["Multiple advanced courses detected - monitor student progress closely"])

    def test_overloaded_student_with_low_gpa(self):
        analysis = workload.analyze_student_load(self.student(gpa=2.9), [record(c) for c in self.enrolled(5, 5, 5, 4)])
        self.assertEqual(analysis["load_status"], "Overloaded")
        self.assertEqual(len(analysis["recommendations"]), 2)

class RegistrationAPITests(TestCase):
    def setUp(self):
        self.admin = User.objects.create_superuser(username='admin', email='admin@test.com', password='password')
        self.faculty = User.objects.create_user(username='faculty', email='faculty@test.com', password='password', role=User.Role.FACULTY)
        self.student = User.objects.create_user(
            username='student', email='student@test.com', password='password',
            first_name='John', last_name='Doe',
        )
        StudentProfile.objects.create(user=self.student, major="Computer Science", gpa=3.2, year="sophomore")

        self.cs101 = create_course(code="CS101", days=["Monday", "Wednesday"], start_time="09:00", end_time="10:00")
        self.math101 = create_course(code="MATH101", title="Calculus I", department="Mathematics",
                                     days=["Wednesday", "Friday"], start_time="09:30", end_time="10:30")
        self.cs201 = create_course(code="CS201", title="Data Structures", days=["Tuesday", "Thursday"],
                                   start_time="11:00", end_time="12:30", prerequisites=["CS101"])

    # --- Feature: Register & drop ---
    def test_register_and_drop(self):
        self.client.login(username='student', password='password')

        response = self.client.post(reverse('register-course', args=[self.cs101.id]))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['course']['code'], "CS101")

        response = self.client.post(reverse('register-course', args=[self.cs101.id]))
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['message'], "Already enrolled in this course")

        response = self.client.get(reverse('my-courses'))
        self.assertEqual([c['code'] for c in response.json()['courses']], ["CS101"])

        response = self.client.delete(reverse('drop-course', args=[self.cs101.id]))
        self.assertEqual(response.status_code, 200)
        response = self.client.delete(reverse('drop-course', args=[self.cs101.id]))
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['reason'], "not_enrolled")

        response = self.client.get(reverse('enrollment-history'))
        self.assertEqual([e['status'] for e in response.json()['enrollments']], ["dropped"])

    def test_schedule_conflict_and_prerequisites(self):
        self.client.login(username='student', password='password')
        self.client.post(reverse('register-course', args=[self.cs101.id]))

        response = self.client.post(reverse('register-course', args=[self.math101.id]))
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['conflicting_course'], "CS101")

        response = self.client.post(reverse('register-course', args=[self.cs201.id]))
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['missing_prerequisites'], ["CS101"])

    def test_unknown_course_is_404(self):
        self.client.login(username='student', password='password')
        response = self.client.post(reverse('register-course', args=[9999]))
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()['message'], "Course not found")

    def test_only_students_register(self):
        self.client.login(username='faculty', password='password')
        response = self.client.post(reverse('register-course', args=[self.cs101.id]))
        self.assertEqual(response.status_code, 403)

    def test_ledger_failure_returns_500(self):
        self.client.login(username='student', password='password')
        with mock.patch.object(RosterEntry.objects, 'create', side_effect=DatabaseError("disk full")):
            with self.assertLogs('academics.services', level='CRITICAL'):
                response = self.client.post(reverse('register-course', args=[self.cs101.id]))
        self.assertEqual(response.status_code, 500)
        self.assertFalse(response.json()['success'])

    def test_recommendations(self):
        self.client.login(username='student', password='password')
        self.client.post(reverse('register-course', args=[self.cs101.id]))

        response = self.client.get(reverse('recommendations'), {'limit': 5})
        data = response.json()
        codes = [r['code'] for r in data['recommendations']]
        self.assertNotIn("CS101", codes)
        scores = [r['score'] for r in data['recommendations']]
        self.assertEqual(scores, sorted(scores, reverse=True))
        self.assertTrue(all(0 <= s <= 100 for s in scores))

    def test_catalog_filters(self):
        self.client.login(username='student', password='password')
        response = self.client.get(reverse('course-list'), {'department': 'Mathematics'})
        self.assertEqual([c['code'] for c in response.json()['courses']], ["MATH101"])

        response = self.client.get(reverse('course-list'), {'search': 'data'})
        course = response.json()['courses'][0]
        self.assertEqual(course['code'], "CS201")
        self.assertEqual(course['schedule'], {"days": ["Tuesday", "Thursday"], "startTime": "11:00",
                                              "endTime": "12:30", "room": "CS-101"})

        response = self.client.get(reverse('course-detail', args=[self.cs101.id]))
        self.assertNotIn('roster', response.json()['course'])

    # --- Feature: Faculty rosters ---
    def test_faculty_roster_and_completion(self):
        self.client.login(username='student', password='password')
        self.client.post(reverse('register-course', args=[self.cs101.id]))
        self.client.logout()

        self.client.login(username='faculty', password='password')
        response = self.client.get(reverse('course-detail', args=[self.cs101.id]))
        roster = response.json()['course']['roster']
        self.assertEqual([r['name'] for r in roster], ["John Doe"])

        response = self.client.get(reverse('faculty-stats'))
        counts = {d['course_code']: d['enrollment_count'] for d in response.json()['stats']['enrollment_data']}
        self.assertEqual(counts["CS101"], 1)

        response = self.client.post(reverse('complete-course', args=[self.cs101.id]),
                                    {'student_id': self.student.id, 'grade': 'B+'}, content_type='application/json')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(CourseEnrollment.objects.get(student=self.student, course=self.cs101).grade, "B+")
        self.cs101.refresh_from_db()
        self.assertEqual(self.cs101.current_enrollment, 0)
        response = self.client.get(reverse('course-detail', args=[self.cs101.id]))
        self.assertEqual(response.json()['course']['roster'], [])

    def test_completion_ledger_failure_returns_500(self):
        services.register_for_course(self.student, self.cs101.id)
        self.client.login(username='faculty', password='password')
        with mock.patch.object(RosterEntry.objects, 'filter', side_effect=DatabaseError("disk full")):
            with self.assertLogs('academics.services', level='CRITICAL'):
                response = self.client.post(reverse('complete-course', args=[self.cs101.id]),
                                            {'student_id': self.student.id}, content_type='application/json')
        self.assertEqual(response.status_code, 500)
        self.assertEqual(CourseEnrollment.objects.get(student=self.student, course=self.cs101).status, "enrolled")

    def test_student_load_analysis(self):
        services.register_for_course(self.student, self.cs101.id)
        url = reverse('student-load', args=[self.student.id])

        self.client.login(username='student', password='password')
        self.assertEqual(self.client.get(url).status_code, 403)
        self.client.logout()

        self.client.login(username='faculty', password='password')
        analysis = self.client.get(url).json()['analysis']
        self.assertEqual(analysis['load_status'], "Underloaded")
        self.assertEqual(analysis['total_credits'], 3)
        self.assertEqual(analysis['gpa'], 3.2)
        self.assertEqual([c['code'] for c in analysis['courses']], ["CS101"])

        response = self.client.get(reverse('student-load', args=[self.faculty.id]))
        self.assertEqual(response.status_code, 404)

    # --- Feature: Schedule optimization ---
    def test_schedule_optimization(self):
        self.client.login(username='student', password='password')
        self.client.post(reverse('register-course', args=[self.cs101.id]))

        response = self.client.post(reverse('schedule-optimization'),
                                    {'course_ids': [self.math101.id, self.cs201.id, 'nope']},
                                    content_type='application/json')
        self.assertEqual(response.status_code, 200)
        options = response.json()['optimization']
        self.assertEqual([(o['code'], o['optimization_score']) for o in options], [("CS201", 95), ("MATH101", 65)])
        self.assertEqual(options[1]['conflicts'], ["CS101"])
        self.assertTrue(options[1]['has_conflicts'])
        self.assertEqual(options[0]['workload_impact']['impact'], "Low")

        response = self.client.post(reverse('schedule-optimization'), {}, content_type='application/json')
        self.assertEqual(response.status_code, 400)

    # --- Feature: Admin course management ---
    def test_admin_course_crud(self):
        self.client.login(username='admin', password='password')
        payload = {
            'code': 'bio101', 'title': 'Biology', 'department': 'Biology', 'credits': 4,
            'schedule': {'days': ['Monday'], 'startTime': '14:00', 'endTime': '15:00', 'room': 'B-1'},
            'semester': 'Fall', 'year': 2024, 'max_capacity': 20, 'prerequisites': ['chem101'],
        }
        response = self.client.post(reverse('admin-courses'), payload, content_type='application/json')
        self.assertEqual(response.status_code, 201)
        course = Course.objects.get(code="BIO101")
        self.assertEqual(course.prerequisites, ["CHEM101"])
        self.assertEqual(course.start_time, "14:00")

        response = self.client.post(reverse('admin-courses'), payload, content_type='application/json')
        self.assertEqual(response.status_code, 400)

        bad = dict(payload, code='BIO102', schedule={'days': ['Monday'], 'startTime': '15:00', 'endTime': '14:00'})
        response = self.client.post(reverse('admin-courses'), bad, content_type='application/json')
        self.assertEqual(response.status_code, 400)

        response = self.client.patch(reverse('admin-course-detail', args=[course.id]), {'max_capacity': 25},
                                     content_type='application/json')
        self.assertEqual(response.status_code, 200)
        course.refresh_from_db()
        self.assertEqual(course.max_capacity, 25)

        response = self.client.delete(reverse('admin-course-detail', args=[course.id]))
        self.assertEqual(response.status_code, 200)
        course.refresh_from_db()
        self.assertFalse(course.is_active)

    def test_students_cannot_manage_courses(self):
        self.client.login(username='student', password='password')
        response = self.client.get(reverse('admin-courses'))
        self.assertEqual(response.status_code, 403)

    def test_admin_assign_and_remove(self):
        self.client.login(username='admin', password='password')
        response = self.client.post(reverse('admin-assign-course', args=[self.student.id]),
                                    {'course_id': self.cs201.id}, content_type='application/json')
        self.assertEqual(response.status_code, 200)
        self.cs201.refresh_from_db()
        self.assertEqual(self.cs201.current_enrollment, 1)

        response = self.client.delete(reverse('admin-remove-course', args=[self.student.id, self.cs201.id]))
        self.assertEqual(response.status_code, 200)
        self.cs201.refresh_from_db()
        self.assertEqual(self.cs201.current_enrollment, 0)
        self.assertEqual(CourseEnrollment.objects.get(student=self.student, course=self.cs201).status, "dropped")

    def test_admin_stats_and_anomalies(self):
        services.register_for_course(self.student, self.cs101.id)
        Course.objects.filter(pk=self.math101.pk).update(max_capacity=1, current_enrollment=2)

        self.client.login(username='admin', password='password')
        response = self.client.get(reverse('admin-stats'))
        self.assertEqual(response.json()['stats']['total_enrollments'], 1)

        response = self.client.get(reverse('admin-anomalies'), {'timeframe': 'daily'})
        data = response.json()
        self.assertEqual(data['timeframe'], "daily")
        capacity = data['anomalies']['capacity_anomalies']
        self.assertIn(("MATH101", "over_enrollment"), [(d['course_code'], d['type']) for d in capacity['details']])
        self.assertIn("capacity_anomalies", data['summary']['categories'])

    # --- Feature: Role landing pages ---
    def test_index_redirects_by_role(self):
        response = self.client.get(reverse('index'))
        self.assertRedirects(response, '/admin/login/', fetch_redirect_response=False)

        self.client.login(username='student', password='password')
        self.assertRedirects(self.client.get(reverse('index')), reverse('my-courses'))
        self.client.logout()

        self.client.login(username='faculty', password='password')
        self.assertRedirects(self.client.get(reverse('index')), reverse('faculty-courses'))

class AuditCommandTests(TestCase):
    def setUp(self):
        self.student = User.objects.create_user(username='s1', email='s1@test.com', password='password')
        self.course = create_course()
        services.register_for_course(self.student, self.course.id)

    def test_consistent_ledger(self):
        out = StringIO()
        call_command('audit_enrollments', stdout=out)
        self.assertIn("consistent", out.getvalue())

    def test_consistent_after_completion(self):
        services.complete_course(self.student, self.course.id, grade="A")
        out = StringIO()
        call_command('audit_enrollments', stdout=out)
        self.assertIn("Enrollment ledger is consistent", out.getvalue())
        self.assertNotIn("roster", out.getvalue())

    def test_reports_and_fixes_counter_drift(self):
        Course.objects.filter(pk=self.course.pk).update(current_enrollment=5)
        out = StringIO()
        with self.assertLogs('academics.management.commands.audit_enrollments', level='WARNING'):
            call_command('audit_enrollments', '--fix', stdout=out)
        self.assertIn("counter is 5, roster has 1 entries", out.getvalue())
        self.course.refresh_from_db()
        self.assertEqual(self.course.current_enrollment, 1)

    def test_reports_roster_without_ledger_record(self):
        CourseEnrollment.objects.filter(student=self.student).update(status=CourseEnrollment.Status.DROPPED)
        out = StringIO()
        with self.assertLogs('academics.management.commands.audit_enrollments', level='WARNING'):
            call_command('audit_enrollments', stdout=out)
        self.assertIn(f"student {self.student.id} on roster without an enrolled record", out.getvalue())
