from django.contrib import admin
from django.contrib.auth import get_user_model
from django.test import TestCase
from django.urls import reverse

from users.admin import UserAdmin
from users.models import StudentProfile

User = get_user_model()

class UserRoleTests(TestCase):
    def setUp(self):
        self.admin = User.objects.create_superuser(username='admin', email='admin@test.com', password='password')
        self.faculty = User.objects.create_user(username='faculty', email='faculty@test.com', password='password', role=User.Role.FACULTY)
        self.student = User.objects.create_user(username='student', email='student@test.com', password='password')

    def test_roles(self):
        """Superusers are always admins; plain users default to students"""
        self.assertEqual(self.admin.role, User.Role.ADMIN)
        self.assertEqual(self.faculty.role, User.Role.FACULTY)
        self.assertEqual(self.student.role, User.Role.STUDENT)

    def test_student_id_generated(self):
        profile = StudentProfile.objects.create(user=self.student, major="Physics")
        self.assertEqual(profile.student_id, f"STU{self.student.id:06d}")

    # --- Feature: Self-registration ---
    def test_self_registration_creates_student(self):
        response = self.client.post(reverse('auth-register'), {
            'username': 'newbie',
            'email': 'newbie@test.com',
            'password': 'secret123',
            'first_name': 'Ada',
            'major': 'Mathematics',
        }, content_type='application/json')
        self.assertEqual(response.status_code, 201)

        user = User.objects.get(username='newbie')
        self.assertEqual(user.role, User.Role.STUDENT)
        self.assertTrue(user.check_password('secret123'))
        self.assertEqual(user.student_profile.major, "Mathematics")
        self.assertEqual(response.json()['user']['student_profile']['year'], "freshman")

    def test_self_registration_rejects_short_password(self):
        response = self.client.post(reverse('auth-register'), {
            'username': 'newbie', 'email': 'newbie@test.com', 'password': '123',
        }, content_type='application/json')
        self.assertEqual(response.status_code, 400)
        self.assertFalse(User.objects.filter(username='newbie').exists())

    def test_me_and_profile_update(self):
        StudentProfile.objects.create(user=self.student)
        self.client.login(username='student', password='password')

        response = self.client.put(reverse('auth-me'), {'major': 'Computer Science', 'year': 'junior'},
                                   content_type='application/json')
        self.assertEqual(response.status_code, 200)
        self.student.student_profile.refresh_from_db()
        self.assertEqual(self.student.student_profile.major, "Computer Science")
        self.assertEqual(self.student.student_profile.year, "junior")

        response = self.client.get(reverse('auth-me'))
        self.assertEqual(response.json()['user']['username'], 'student')

    # --- Feature: Admin user management ---
    def test_admin_lists_users_by_role(self):
        self.client.login(username='admin', password='password')
        response = self.client.get(reverse('admin-users'), {'role': 'faculty'})
        self.assertEqual(response.status_code, 200)
        self.assertEqual([u['username'] for u in response.json()['users']], ['faculty'])

        response = self.client.get(reverse('admin-users'), {'search': 'stud'})
        self.assertEqual([u['username'] for u in response.json()['users']], ['student'])

    def test_admin_changes_role(self):
        self.client.login(username='admin', password='password')
        url = reverse('admin-user-role', args=[self.student.id])

        response = self.client.put(url, {'role': 'wizard'}, content_type='application/json')
        self.assertEqual(response.status_code, 400)

        response = self.client.put(url, {'role': 'faculty'}, content_type='application/json')
        self.assertEqual(response.status_code, 200)
        self.student.refresh_from_db()
        self.assertEqual(self.student.role, User.Role.FACULTY)

    def test_non_admins_are_forbidden(self):
        self.client.login(username='faculty', password='password')
        self.assertEqual(self.client.get(reverse('admin-users')).status_code, 403)

    def test_anonymous_requests_are_rejected(self):
        response = self.client.get(reverse('auth-me'))
        self.assertIn(response.status_code, (401, 403))

    # --- Feature: Django admin ---
    def test_admin_site_registers_single_user_admin(self):
        self.assertIsInstance(admin.site._registry[User], UserAdmin)
        self.assertIn('role', UserAdmin.list_display)

        self.client.login(username='admin', password='password')
        response = self.client.get(reverse('admin:users_user_changelist'), {'role': 'faculty'})
        self.assertEqual(response.status_code, 200)
        self.assertContains(response, 'faculty@test.com')
        self.assertNotContains(response, 'student@test.com')
