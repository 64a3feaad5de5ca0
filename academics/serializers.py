from rest_framework import serializers
from .models import Course, CourseEnrollment, RosterEntry, Weekday, time_validator

class ScheduleSerializer(serializers.Serializer):
    days = serializers.ListField(child=serializers.ChoiceField(choices=Weekday.choices), allow_empty=False)
    startTime = serializers.CharField(source='start_time', validators=[time_validator])
    endTime = serializers.CharField(source='end_time', validators=[time_validator])
    room = serializers.CharField(allow_blank=True, required=False, default='')

class CourseSerializer(serializers.ModelSerializer):
    schedule = ScheduleSerializer(source='*')
    prerequisites = serializers.ListField(child=serializers.CharField(max_length=20), required=False)
    seats_available = serializers.IntegerField(read_only=True)

    class Meta:
        model = Course
        fields = [
            'id', 'code', 'title', 'description', 'credits', 'department', 'instructor',
            'schedule', 'semester', 'year', 'max_capacity', 'current_enrollment', 'seats_available',
            'prerequisites', 'category', 'level', 'difficulty', 'is_active',
        ]
        read_only_fields = ['current_enrollment']

    def validate_code(self, value):
        return value.strip().upper()

    def validate_prerequisites(self, value):
        return [code.strip().upper() for code in value if code.strip()]

    def validate(self, attrs):
        start = attrs.get('start_time', getattr(self.instance, 'start_time', None))
        end = attrs.get('end_time', getattr(self.instance, 'end_time', None))
        if start and end and start >= end:
            raise serializers.ValidationError({"schedule": "startTime must be before endTime."})
        return attrs

class CourseSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = Course
        fields = ['id', 'code', 'title', 'credits']

class RosterEntrySerializer(serializers.ModelSerializer):
    student_id = serializers.IntegerField(source='student.id', read_only=True)
    username = serializers.CharField(source='student.username', read_only=True)
    name = serializers.CharField(source='student.display_name', read_only=True)

    class Meta:
        model = RosterEntry
        fields = ['student_id', 'username', 'name', 'enrolled_at']

class CourseRosterSerializer(CourseSerializer):
    roster = RosterEntrySerializer(many=True, read_only=True)

    class Meta(CourseSerializer.Meta):
        fields = CourseSerializer.Meta.fields + ['roster']

class EnrollmentSerializer(serializers.ModelSerializer):
    course = CourseSummarySerializer(read_only=True)

    class Meta:
        model = CourseEnrollment
        fields = ['id', 'course', 'status', 'enrolled_at', 'dropped_at', 'completed_at', 'grade']
