from django.contrib.auth.models import AbstractUser
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models

class User(AbstractUser):
    class Role(models.TextChoices):
        ADMIN = "ADMIN", "Admin"
        FACULTY = "FACULTY", "Faculty"
        STUDENT = "STUDENT", "Student"

    role = models.CharField(max_length=50, choices=Role.choices, default=Role.STUDENT)
    email = models.EmailField(unique=True)

    def save(self, *args, **kwargs):
        if self.is_superuser:
            self.role = self.Role.ADMIN
        super().save(*args, **kwargs)

    @property
    def display_name(self):
        return self.get_full_name() or self.username

class StudentProfile(models.Model):
    class Year(models.TextChoices):
        FRESHMAN = "freshman", "Freshman"
        SOPHOMORE = "sophomore", "Sophomore"
        JUNIOR = "junior", "Junior"
        SENIOR = "senior", "Senior"
        GRADUATE = "graduate", "Graduate"

    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='student_profile')
    # Filled from the user id on first save when left blank
    student_id = models.CharField(max_length=20, unique=True, blank=True)
    gpa = models.FloatField(default=0.0, validators=[MinValueValidator(0.0), MaxValueValidator(4.0)])
    major = models.CharField(max_length=100, blank=True)  # matched against Course.department
    year = models.CharField(max_length=20, choices=Year.choices, default=Year.FRESHMAN)

    def save(self, *args, **kwargs):
        if not self.student_id:
            self.student_id = f"STU{self.user_id:06d}"
        super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.student_id} - {self.user.username}"
