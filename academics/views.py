import logging

from django.conf import settings
from django.db.models import Count, Q
from django.shortcuts import get_object_or_404
from rest_framework import permissions, status, views
from rest_framework.response import Response

from users.models import User
from users.permissions import IsAdminRole, IsFacultyOrAdmin, IsStudent, has_role
from . import anomalies, recommendations, services, workload
from .models import Course, CourseEnrollment
from .serializers import (
    CourseRosterSerializer, CourseSerializer, CourseSummarySerializer, EnrollmentSerializer,
)

logger = logging.getLogger(__name__)

LEDGER_ERROR_MESSAGE = "Enrollment could not be recorded. The registrar has been notified."

def denied(decision):
    body = {"success": False, "message": decision.message, "reason": decision.reason}
    if decision.conflicting_course:
        body["conflicting_course"] = decision.conflicting_course
    if decision.missing_prerequisites:
        body["missing_prerequisites"] = list(decision.missing_prerequisites)
    code = status.HTTP_404_NOT_FOUND if decision.is_not_found else status.HTTP_400_BAD_REQUEST
    return Response(body, status=code)

def ledger_failure():
    return Response({"success": False, "message": LEDGER_ERROR_MESSAGE},
                    status=status.HTTP_500_INTERNAL_SERVER_ERROR)

def parse_id(value):
    try:
        return int(value)
    except (TypeError, ValueError):
        return None

def get_student(user_id):
    return get_object_or_404(User, id=parse_id(user_id), role=User.Role.STUDENT)

# --- Catalog API ---

class CourseListView(views.APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        params = request.query_params
        courses = Course.objects.filter(is_active=True)

        if params.get('department'):
            courses = courses.filter(department=params['department'])
        if params.get('semester'):
            courses = courses.filter(semester=params['semester'])
        if params.get('year', '').isdigit():
            courses = courses.filter(year=int(params['year']))
        search = params.get('search')
        if search:
            courses = courses.filter(
                Q(code__icontains=search) | Q(title__icontains=search) | Q(instructor__icontains=search)
            )

        data = CourseSerializer(courses, many=True).data
        return Response({"success": True, "count": len(data), "courses": data})

class CourseDetailView(views.APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request, course_id):
        course = get_object_or_404(Course, id=course_id)
        # Rosters are visible to faculty and admins only
        if has_role(request.user, User.Role.FACULTY, User.Role.ADMIN):
            data = CourseRosterSerializer(course).data
        else:
            data = CourseSerializer(course).data
        return Response({"success": True, "course": data})

# --- Student API ---

class MyCoursesView(views.APIView):
    permission_classes = [IsStudent]

    def get(self, request):
        enrollments = CourseEnrollment.objects.filter(
            student=request.user,
            status=CourseEnrollment.Status.ENROLLED,
            course__is_active=True,
        ).select_related('course')

        courses = [
            dict(CourseSerializer(e.course).data, enrolled_at=e.enrolled_at)
            for e in enrollments
        ]
        return Response({"success": True, "courses": courses})

class EnrollmentHistoryView(views.APIView):
    permission_classes = [IsStudent]

    def get(self, request):
        enrollments = CourseEnrollment.objects.filter(student=request.user).select_related('course')
        return Response({"success": True, "enrollments": EnrollmentSerializer(enrollments, many=True).data})

class RecommendationsView(views.APIView):
    permission_classes = [IsStudent]

    def get(self, request):
        limit = request.query_params.get('limit', '')
        limit = int(limit) if limit.isdigit() else settings.REGISTRATION_RECOMMENDATION_LIMIT

        enrollments = CourseEnrollment.objects.filter(student=request.user).select_related('course')
        results = recommendations.recommend_courses(
            request.user, Course.objects.filter(is_active=True), enrollments, limit=limit
        )
        data = [
            dict(CourseSerializer(r.course).data, score=r.score, reasons=r.reasons)
            for r in results
        ]
        return Response({"success": True, "count": len(data), "recommendations": data})

class ScheduleOptimizationView(views.APIView):
    permission_classes = [IsStudent]

    def post(self, request):
        # Expects: { "course_ids": [4, 7] }
        course_ids = request.data.get('course_ids')
        if not isinstance(course_ids, list):
            return Response({"success": False, "message": "course_ids list is required"},
                            status=status.HTTP_400_BAD_REQUEST)

        ids = [pk for pk in map(parse_id, course_ids) if pk is not None]
        courses = Course.objects.filter(pk__in=ids, is_active=True).order_by('code')
        enrollments = CourseEnrollment.objects.filter(student=request.user).select_related('course')
        options = workload.analyze_schedule_optimization(request.user, courses, enrollments)
        data = [
            dict(CourseSummarySerializer(o.course).data, has_conflicts=bool(o.conflicts),
                 conflicts=[c.code for c in o.conflicts], workload_impact=o.workload,
                 optimization_score=o.score)
            for o in options
        ]
        return Response({"success": True, "optimization": data})

class RegisterCourseView(views.APIView):
    permission_classes = [IsStudent]

    def post(self, request, course_id):
        try:
            decision, course = services.register_for_course(request.user, course_id)
        except services.EnrollmentLedgerError:
            return ledger_failure()

        if not decision.allowed:
            return denied(decision)

        return Response({
            "success": True,
            "message": "Successfully registered for course",
            "course": CourseSummarySerializer(course).data,
        })

class DropCourseView(views.APIView):
    permission_classes = [IsStudent]

    def delete(self, request, course_id):
        try:
            decision, course = services.drop_course(request.user, course_id)
        except services.EnrollmentLedgerError:
            return ledger_failure()

        if not decision.allowed:
            return denied(decision)

        return Response({"success": True, "message": "Successfully dropped course"})

# --- Faculty API ---

class CompleteCourseView(views.APIView):
    permission_classes = [IsFacultyOrAdmin]

    def post(self, request, course_id):
        # Expects: { "student_id": 3, "grade": "A" }
        student = get_student(request.data.get('student_id'))
        try:
            decision, course = services.complete_course(student, course_id, grade=request.data.get('grade', ''))
        except services.EnrollmentLedgerError:
            return ledger_failure()
        if not decision.allowed:
            return denied(decision)
        return Response({"success": True, "message": f"{course.code} marked completed for {student.username}"})

class FacultyCoursesView(views.APIView):
    permission_classes = [IsFacultyOrAdmin]

    def get(self, request):
        courses = Course.objects.filter(is_active=True).prefetch_related('roster__student')
        data = CourseRosterSerializer(courses, many=True).data
        return Response({"success": True, "count": len(data), "courses": data})

class StudentLoadView(views.APIView):
    permission_classes = [IsFacultyOrAdmin]

    def get(self, request, user_id):
        student = get_student(user_id)
        enrollments = CourseEnrollment.objects.filter(student=student).select_related('course')
        return Response({"success": True, "analysis": workload.analyze_student_load(student, enrollments)})

class FacultyStatsView(views.APIView):
    permission_classes = [IsFacultyOrAdmin]

    def get(self, request):
        courses = Course.objects.filter(is_active=True).annotate(enrollment_count=Count('roster'))
        return Response({
            "success": True,
            "stats": {
                "total_students": User.objects.filter(role=User.Role.STUDENT).count(),
                "total_courses": courses.count(),
                "enrollment_data": [
                    {"course_code": c.code, "enrollment_count": c.enrollment_count} for c in courses
                ],
            },
        })

# --- Admin API ---

class AdminCourseListView(views.APIView):
    permission_classes = [IsAdminRole]

    def get(self, request):
        data = CourseSerializer(Course.objects.all(), many=True).data
        return Response({"success": True, "count": len(data), "courses": data})

    def post(self, request):
        serializer = CourseSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        course = serializer.save()
        logger.info("Course %s (%s %s) created by %s", course.code, course.semester, course.year, request.user.username)
        return Response({"success": True, "course": CourseSerializer(course).data}, status=status.HTTP_201_CREATED)

class AdminCourseDetailView(views.APIView):
    permission_classes = [IsAdminRole]

    def put(self, request, course_id):
        return self._update(request, course_id, partial=False)

    def patch(self, request, course_id):
        return self._update(request, course_id, partial=True)

    def _update(self, request, course_id, partial):
        course = get_object_or_404(Course, id=course_id)
        serializer = CourseSerializer(course, data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        course = serializer.save()
        return Response({"success": True, "course": CourseSerializer(course).data})

    def delete(self, request, course_id):
        course = get_object_or_404(Course, id=course_id)
        # Soft delete; enrollment history keeps pointing at the course
        course.is_active = False
        course.save(update_fields=['is_active', 'updated_at'])
        logger.info("Course %s deactivated by %s", course.code, request.user.username)
        return Response({"success": True, "message": "Course deactivated successfully"})

class AdminAssignCourseView(views.APIView):
    permission_classes = [IsAdminRole]

    def post(self, request, user_id):
        student = get_student(user_id)
        try:
            decision, course = services.assign_course(student, parse_id(request.data.get('course_id')))
        except services.EnrollmentLedgerError:
            return ledger_failure()
        if not decision.allowed:
            return denied(decision)
        return Response({"success": True, "message": "Course assigned successfully"})

class AdminRemoveCourseView(views.APIView):
    permission_classes = [IsAdminRole]

    def delete(self, request, user_id, course_id):
        student = get_student(user_id)
        try:
            decision, course = services.drop_course(student, course_id)
        except services.EnrollmentLedgerError:
            return ledger_failure()
        if not decision.allowed:
            return denied(decision)
        return Response({"success": True, "message": "Course removed successfully"})

class AdminStatsView(views.APIView):
    permission_classes = [IsAdminRole]

    def get(self, request):
        active = CourseEnrollment.objects.filter(status=CourseEnrollment.Status.ENROLLED)
        popular = Course.objects.filter(is_active=True).order_by('-current_enrollment', 'code')[:5]
        recent = active.select_related('student', 'course').order_by('-enrolled_at')[:10]

        return Response({
            "success": True,
            "stats": {
                "total_users": User.objects.count(),
                "total_students": User.objects.filter(role=User.Role.STUDENT).count(),
                "total_faculty": User.objects.filter(role=User.Role.FACULTY).count(),
                "total_courses": Course.objects.filter(is_active=True).count(),
                "total_enrollments": active.count(),
                "popular_courses": [
                    {"code": c.code, "title": c.title, "current_enrollment": c.current_enrollment,
                     "max_capacity": c.max_capacity}
                    for c in popular
                ],
                "recent_registrations": [
                    {"student": e.student.display_name, "course_code": e.course.code,
                     "course_title": e.course.title, "enrolled_at": e.enrolled_at}
                    for e in recent
                ],
            },
        })

class AnomalyReportView(views.APIView):
    permission_classes = [IsAdminRole]

    def get(self, request):
        report = anomalies.build_report(request.query_params.get('timeframe', 'weekly'))
        return Response(dict(report, success=True))
