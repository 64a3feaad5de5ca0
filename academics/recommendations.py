"""Advisory course scoring. Read-only; deterministic in its inputs."""
from collections import namedtuple

from .models import Course, CourseEnrollment

Recommendation = namedtuple('Recommendation', ['course', 'score', 'reasons'])

BASE_SCORE = 50

RELATED_DEPARTMENTS = {
    'Computer Science': ('Mathematics', 'Engineering', 'Physics'),
    'Mathematics': ('Computer Science', 'Physics', 'Engineering'),
    'Engineering': ('Mathematics', 'Physics', 'Computer Science'),
    'Physics': ('Mathematics', 'Engineering', 'Computer Science'),
    'Business': ('Economics', 'Accounting', 'Marketing'),
    'Economics': ('Business', 'Mathematics', 'Statistics'),
}

# Course-number digit that marks a year-appropriate course
YEAR_LEVEL_DIGIT = {
    'freshman': '1',
    'sophomore': '2',
    'junior': '3',
    'senior': '4',
}


def academic_profile(student):
    # RelatedObjectDoesNotExist is an AttributeError
    profile = getattr(student, 'student_profile', None)
    gpa = (profile.gpa if profile else 0.0) or 0.0
    major = profile.major if profile else ''
    year = profile.year if profile else 'freshman'
    return gpa, major, year


def is_related_department(department, major):
    return department in RELATED_DEPARTMENTS.get(major, ())


def prerequisites_met(course, enrollments):
    """Completed or currently enrolled prerequisites both count here."""
    if not course.prerequisites:
        return True
    held = {
        e.course.code.upper() for e in enrollments
        if e.status in (CourseEnrollment.Status.COMPLETED, CourseEnrollment.Status.ENROLLED)
    }
    return all(code.upper() in held for code in course.prerequisites)


def enrollment_ratio(course):
    if not course.max_capacity:
        return 0.0
    return course.current_enrollment / course.max_capacity


def score_course(course, student, enrollments):
    """
    Score ``course`` for ``student`` on a 0-100 scale, starting from
    BASE_SCORE:

    * major match +40, related department +20
    * GPA fit against difficulty or course level +20 to +30
    * prerequisites met +15, otherwise -20
    * enrollment between 30% and 80% of capacity +10
    * course number matching the student's year +15

    Time-of-day preference is not scored; student profiles carry no
    preferred meeting times to compare against.
    """
    gpa, major, year = academic_profile(student)
    code = course.code
    score = BASE_SCORE

    if major and course.department == major:
        score += 40
    elif is_related_department(course.department, major):
        score += 20

    if gpa >= 3.5:
        if course.difficulty == Course.Difficulty.ADVANCED or '3' in code or '4' in code:
            score += 25
    elif gpa >= 2.5:
        if course.difficulty == Course.Difficulty.INTERMEDIATE or '2' in code:
            score += 20
    elif course.difficulty == Course.Difficulty.BEGINNER or '1' in code:
        score += 30

    if prerequisites_met(course, enrollments):
        score += 15
    else:
        score -= 20

    if 0.3 < enrollment_ratio(course) < 0.8:
        score += 10

    digit = YEAR_LEVEL_DIGIT.get(year)
    if digit and digit in code:
        score += 15

    return max(0, min(100, score))


def recommendation_reasons(course, student, enrollments):
    gpa, major, year = academic_profile(student)
    code = course.code
    reasons = []

    if major and course.department == major:
        reasons.append(f"Perfect match for your {major} major")

    if gpa >= 3.5 and (course.difficulty == Course.Difficulty.ADVANCED or '3' in code):
        reasons.append(f"Your strong GPA ({gpa}) makes you ready for this advanced course")
    elif gpa < 2.5 and '1' in code:
        reasons.append("Foundational course to strengthen your academic base")

    if prerequisites_met(course, enrollments):
        reasons.append("You meet all prerequisites")

    if year == 'freshman' and '1' in code:
        reasons.append("Ideal for first-year students")
    elif year == 'senior' and '4' in code:
        reasons.append("Advanced course suitable for senior year")

    ratio = enrollment_ratio(course)
    if ratio < 0.5:
        reasons.append("Good availability - register soon!")
    elif ratio > 0.8:
        reasons.append("Popular course - limited seats remaining")

    return reasons or ["Recommended based on your academic profile"]


def recommend_courses(student, courses, enrollments, limit=5):
    """
    Score every course the student is not actively enrolled in and return
    the top ``limit``. Equal scores keep their input order.
    """
    enrollments = list(enrollments)
    active = {e.course_id for e in enrollments if e.status == CourseEnrollment.Status.ENROLLED}
    scored = [
        Recommendation(course, score_course(course, student, enrollments),
                       recommendation_reasons(course, student, enrollments))
        for course in courses
        if course.pk not in active
    ]
    scored.sort(key=lambda r: r.score, reverse=True)
    return scored[:limit]
