from django.contrib import admin
from .models import Course, CourseEnrollment, RosterEntry

class RosterEntryInline(admin.TabularInline):
    model = RosterEntry
    extra = 0
    readonly_fields = ('student', 'enrolled_at')

@admin.register(Course)
class CourseAdmin(admin.ModelAdmin):
    list_display = ('code', 'title', 'department', 'semester', 'year', 'current_enrollment', 'max_capacity', 'is_active')
    list_filter = ('department', 'semester', 'year', 'is_active')
    search_fields = ('title', 'code', 'instructor')
    readonly_fields = ('current_enrollment',)
    inlines = [RosterEntryInline]

@admin.register(CourseEnrollment)
class CourseEnrollmentAdmin(admin.ModelAdmin):
    list_display = ('student', 'course', 'status', 'enrolled_at', 'dropped_at', 'grade')
    list_filter = ('status', 'course')
    search_fields = ('student__username', 'course__code')

@admin.register(RosterEntry)
class RosterEntryAdmin(admin.ModelAdmin):
    list_display = ('course', 'student', 'enrolled_at')
    list_filter = ('course',)
    search_fields = ('student__username', 'course__code')
