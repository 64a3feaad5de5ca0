"""
Course-load analysis: what adding a course does to a student's credit
load, and how heavy a student's current load is. Advisory only.
"""
from collections import namedtuple

from . import rules
from .models import Course, CourseEnrollment
from .recommendations import academic_profile

ScheduleOption = namedtuple('ScheduleOption', ['course', 'conflicts', 'workload', 'score'])

DEFAULT_CREDITS = 3
HEAVY_LOAD = 18
FULL_LOAD = 15
FULL_TIME_MINIMUM = 12

HIGH = 'High'
MEDIUM = 'Medium'
LOW = 'Low'


def credits_of(course):
    return course.credits or DEFAULT_CREDITS


def active_courses(enrollments):
    return [e.course for e in enrollments if e.status == CourseEnrollment.Status.ENROLLED]


def workload_recommendation(total_credits, gpa):
    if total_credits > HEAVY_LOAD:
        if gpa >= 3.5:
            return "Heavy load but manageable with your strong GPA"
        return "Consider reducing course load for better academic performance"
    if total_credits > FULL_LOAD:
        return "Standard full-time course load"
    return "Light course load - consider adding another course"


def calculate_workload_impact(course, enrolled_courses, gpa=0.0):
    current = sum(credits_of(c) for c in enrolled_courses)
    new_total = current + credits_of(course)
    if new_total > HEAVY_LOAD:
        impact = HIGH
    elif new_total > FULL_LOAD:
        impact = MEDIUM
    else:
        impact = LOW
    return {
        "impact": impact,
        "current_credits": current,
        "new_total_credits": new_total,
        "recommendation": workload_recommendation(new_total, gpa),
    }


def optimization_score(conflicts, workload):
    """
    100, minus 30 per conflict, adjusted for load; a 15-16 credit total
    earns a bonus. Clamped to 0-100.
    """
    score = 100 - 30 * len(conflicts)
    if workload["impact"] == HIGH:
        score -= 20
    elif workload["impact"] == LOW:
        score -= 5
    if FULL_LOAD <= workload["new_total_credits"] <= FULL_LOAD + 1:
        score += 10
    return max(0, min(100, score))


def analyze_schedule_optimization(student, courses, enrollments):
    """
    Rate each candidate course against the student's current schedule.
    Best fit first; equal scores keep their input order.
    """
    gpa = academic_profile(student)[0]
    enrolled = active_courses(enrollments)
    options = []
    for course in courses:
        conflicts = [
            other for other in enrolled
            if other.pk != course.pk and rules.has_schedule_conflict(course, other)
        ]
        workload = calculate_workload_impact(course, enrolled, gpa)
        options.append(ScheduleOption(course, conflicts, workload, optimization_score(conflicts, workload)))
    options.sort(key=lambda o: o.score, reverse=True)
    return options


def load_status(total_credits, gpa):
    if total_credits > HEAVY_LOAD:
        return 'Overloaded'
    if total_credits < FULL_TIME_MINIMUM:
        return 'Underloaded'
    if total_credits >= FULL_LOAD and gpa < 2.5:
        return 'At Risk'
    return 'Normal'


def analyze_student_load(student, enrollments):
    gpa = academic_profile(student)[0]
    courses = active_courses(enrollments)
    total = sum(credits_of(c) for c in courses)
    status = load_status(total, gpa)

    advice = []
    if status == 'Overloaded':
        advice.append("Consider dropping a course to maintain academic performance")
        if gpa < 3.0:
            advice.append("Heavy course load may be impacting GPA - recommend academic advising")
    elif status == 'Underloaded':
        advice.append("Consider adding courses to maintain full-time status")
    elif status == 'At Risk':
        advice.append("Current course load may be challenging given GPA - consider reducing load")

    if sum(1 for c in courses if c.difficulty == Course.Difficulty.ADVANCED) > 2:
        advice.append("Multiple advanced courses detected - monitor student progress closely")

    return {
        "student_id": student.pk,
        "student_name": student.display_name,
        "total_credits": total,
        "course_count": len(courses),
        "gpa": gpa,
        "load_status": status,
        "recommendations": advice,
        "courses": [
            {"code": c.code, "title": c.title, "credits": c.credits, "difficulty": c.difficulty}
            for c in courses
        ],
    }
