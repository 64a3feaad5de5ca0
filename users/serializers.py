from django.contrib.auth.password_validation import validate_password as run_password_validators
from django.db import transaction
from rest_framework import serializers

from .models import User, StudentProfile

class StudentProfileSerializer(serializers.ModelSerializer):
    class Meta:
        model = StudentProfile
        fields = ['student_id', 'gpa', 'major', 'year']
        read_only_fields = ['student_id']

class UserSerializer(serializers.ModelSerializer):
    student_profile = StudentProfileSerializer(read_only=True)

    class Meta:
        model = User
        fields = ['id', 'username', 'email', 'first_name', 'last_name', 'role', 'student_profile']
        read_only_fields = ['id', 'username', 'role']

class RegisterSerializer(serializers.ModelSerializer):
    """Self-registration: always creates a student with an empty academic profile."""
    password = serializers.CharField(write_only=True, min_length=6)
    major = serializers.CharField(required=False, allow_blank=True, default='')
    year = serializers.ChoiceField(choices=StudentProfile.Year.choices, required=False, default=StudentProfile.Year.FRESHMAN)

    class Meta:
        model = User
        fields = ['username', 'email', 'password', 'first_name', 'last_name', 'major', 'year']

    def validate_password(self, value):
        run_password_validators(value)
        return value

    @transaction.atomic
    def create(self, validated_data):
        major = validated_data.pop('major', '')
        year = validated_data.pop('year', StudentProfile.Year.FRESHMAN)
        user = User.objects.create_user(role=User.Role.STUDENT, **validated_data)
        StudentProfile.objects.create(user=user, major=major, year=year)
        return user

class ProfileUpdateSerializer(serializers.ModelSerializer):
    major = serializers.CharField(required=False, allow_blank=True)
    year = serializers.ChoiceField(choices=StudentProfile.Year.choices, required=False)

    class Meta:
        model = User
        fields = ['first_name', 'last_name', 'email', 'major', 'year']

    def update(self, instance, validated_data):
        profile_fields = {k: validated_data.pop(k) for k in ('major', 'year') if k in validated_data}
        instance = super().update(instance, validated_data)
        if profile_fields and instance.role == User.Role.STUDENT:
            profile, _ = StudentProfile.objects.get_or_create(user=instance)
            for field, value in profile_fields.items():
                setattr(profile, field, value)
            profile.save()
        return instance
