from django.urls import path
from .views import (
    CourseListView, CourseDetailView, MyCoursesView, EnrollmentHistoryView, RecommendationsView,
    ScheduleOptimizationView, RegisterCourseView, DropCourseView, CompleteCourseView,
    FacultyCoursesView, FacultyStatsView, StudentLoadView,
    AdminCourseListView, AdminCourseDetailView, AdminAssignCourseView, AdminRemoveCourseView,
    AdminStatsView, AnomalyReportView,
)

urlpatterns = [
    # Catalog & student API
    path('courses/', CourseListView.as_view(), name='course-list'),
    path('courses/my-courses/', MyCoursesView.as_view(), name='my-courses'),
    path('courses/history/', EnrollmentHistoryView.as_view(), name='enrollment-history'),
    path('courses/recommendations/', RecommendationsView.as_view(), name='recommendations'),
    path('courses/schedule-optimization/', ScheduleOptimizationView.as_view(), name='schedule-optimization'),
    path('courses/<int:course_id>/', CourseDetailView.as_view(), name='course-detail'),
    path('courses/<int:course_id>/register/', RegisterCourseView.as_view(), name='register-course'),
    path('courses/<int:course_id>/drop/', DropCourseView.as_view(), name='drop-course'),
    path('courses/<int:course_id>/complete/', CompleteCourseView.as_view(), name='complete-course'),

    # Faculty API
    path('faculty/courses/', FacultyCoursesView.as_view(), name='faculty-courses'),
    path('faculty/stats/', FacultyStatsView.as_view(), name='faculty-stats'),
    path('faculty/students/<int:user_id>/load/', StudentLoadView.as_view(), name='student-load'),

    # Admin API
    path('admin/courses/', AdminCourseListView.as_view(), name='admin-courses'),
    path('admin/courses/<int:course_id>/', AdminCourseDetailView.as_view(), name='admin-course-detail'),
    path('admin/users/<int:user_id>/assign-course/', AdminAssignCourseView.as_view(), name='admin-assign-course'),
    path('admin/users/<int:user_id>/remove-course/<int:course_id>/', AdminRemoveCourseView.as_view(), name='admin-remove-course'),
    path('admin/stats/', AdminStatsView.as_view(), name='admin-stats'),
    path('admin/anomalies/', AnomalyReportView.as_view(), name='admin-anomalies'),
]
