from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator, RegexValidator
from django.db import models
from django.utils import timezone

time_validator = RegexValidator(r'^([01]\d|2[0-3]):[0-5]\d$', "Use zero-padded 24-hour HH:MM.")

class Weekday(models.TextChoices):
    MONDAY = "Monday", "Monday"
    TUESDAY = "Tuesday", "Tuesday"
    WEDNESDAY = "Wednesday", "Wednesday"
    THURSDAY = "Thursday", "Thursday"
    FRIDAY = "Friday", "Friday"
    SATURDAY = "Saturday", "Saturday"
    SUNDAY = "Sunday", "Sunday"

class Course(models.Model):
    class Semester(models.TextChoices):
        FALL = "Fall", "Fall"
        SPRING = "Spring", "Spring"
        SUMMER = "Summer", "Summer"

    class Category(models.TextChoices):
        CORE = "core", "Core"
        ELECTIVE = "elective", "Elective"
        MAJOR = "major", "Major"
        GENERAL_EDUCATION = "general_education", "General Education"

    class Level(models.TextChoices):
        UNDERGRADUATE = "undergraduate", "Undergraduate"
        GRADUATE = "graduate", "Graduate"

    class Difficulty(models.TextChoices):
        BEGINNER = "Beginner", "Beginner"
        INTERMEDIATE = "Intermediate", "Intermediate"
        ADVANCED = "Advanced", "Advanced"

    code = models.CharField(max_length=20) # e.g. CS101
    title = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    credits = models.PositiveSmallIntegerField(default=3, validators=[MinValueValidator(1), MaxValueValidator(6)])
    department = models.CharField(max_length=100)
    instructor = models.CharField(max_length=100, blank=True)

    # Schedule
    days = models.JSONField(default=list, blank=True) # list of Weekday values
    start_time = models.CharField(max_length=5, validators=[time_validator])
    end_time = models.CharField(max_length=5, validators=[time_validator])
    room = models.CharField(max_length=50, blank=True)

    semester = models.CharField(max_length=10, choices=Semester.choices)
    year = models.PositiveIntegerField()

    max_capacity = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    # Denormalized; equals roster.count() when the ledger is consistent
    current_enrollment = models.PositiveIntegerField(default=0)

    prerequisites = models.JSONField(default=list, blank=True) # list of course codes
    category = models.CharField(max_length=20, choices=Category.choices, default=Category.ELECTIVE)
    level = models.CharField(max_length=20, choices=Level.choices, default=Level.UNDERGRADUATE)
    difficulty = models.CharField(max_length=20, choices=Difficulty.choices, blank=True)

    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['code']
        unique_together = ('code', 'semester', 'year')
        indexes = [
            models.Index(fields=['department'], name='course_department_idx'),
            models.Index(fields=['instructor'], name='course_instructor_idx'),
        ]

    def save(self, *args, **kwargs):
        self.code = self.code.strip().upper()
        self.prerequisites = [p.strip().upper() for p in self.prerequisites if p and p.strip()]
        super().save(*args, **kwargs)

    def is_full(self):
        from .rules import is_full
        return is_full(self)

    def has_schedule_conflict(self, other):
        from .rules import has_schedule_conflict
        return has_schedule_conflict(self, other)

    @property
    def seats_available(self):
        return max(0, self.max_capacity - self.current_enrollment)

    def __str__(self):
        return f"{self.code} - {self.title}"

class CourseEnrollment(models.Model):
    """Student-side ledger entry. Dropped and completed records are kept as history."""

    class Status(models.TextChoices):
        ENROLLED = "enrolled", "Enrolled"
        DROPPED = "dropped", "Dropped"
        COMPLETED = "completed", "Completed"

    student = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='enrollments')
    course = models.ForeignKey(Course, on_delete=models.CASCADE, related_name='enrollments')
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.ENROLLED)
    enrolled_at = models.DateTimeField(default=timezone.now)
    dropped_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    grade = models.CharField(max_length=5, blank=True)

    class Meta:
        ordering = ['enrolled_at', 'id']
        constraints = [
            models.UniqueConstraint(
                fields=['student', 'course'],
                condition=models.Q(status='enrolled'),
                name='one_active_enrollment_per_course',
            ),
        ]

    def __str__(self):
        return f"{self.student} -> {self.course} ({self.status})"

class RosterEntry(models.Model):
    """Course-side entry. Deleted outright when the student drops."""
    course = models.ForeignKey(Course, on_delete=models.CASCADE, related_name='roster')
    student = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='roster_entries')
    enrolled_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['enrolled_at', 'id']
        unique_together = ('course', 'student')
        verbose_name_plural = 'roster entries'

    def __str__(self):
        return f"{self.course.code}: {self.student}"
