from django.contrib.auth import get_user_model
from django.test import TestCase

from teachers.models import Teacher

User = get_user_model()


class TeacherModelTests(TestCase):
    """Tests for the Teacher model."""

    def _create_teacher(self, **kwargs):
        defaults = {
            'first_name': 'Kwame',
            'last_name': 'Asante',
            'staff_id': 'TCH-001',
        }
        defaults.update(kwargs)
        return Teacher.objects.create(**defaults)

    def test_create_teacher(self):
        teacher = self._create_teacher()
        self.assertEqual(teacher.first_name, 'Kwame')
        self.assertEqual(teacher.status, Teacher.Status.ACTIVE)

    def test_full_name(self):
        teacher = self._create_teacher(middle_name='Kwesi')
        self.assertEqual(teacher.full_name, 'Kwame Kwesi Asante')

    def test_full_name_no_middle(self):
        teacher = self._create_teacher()
        self.assertEqual(str(teacher), 'Kwame Asante')

    def test_user_link(self):
        user = User.objects.create_teacher(email='kwame@school.com', password='pass123')
        teacher = self._create_teacher(user=user)
        self.assertEqual(user.teacher_profile, teacher)
