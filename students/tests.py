from datetime import date

from django.test import TestCase

from academics.models import ClassGroup
from core.models import AcademicYear
from students.models import Student, Enrollment


class StudentModelTests(TestCase):
    """Tests for the Student model."""

    def test_full_name_with_other_names(self):
        student = Student.objects.create(
            first_name='Kwame', other_names='Nkansah', last_name='Mensah',
            admission_number='STU-2024-001',
        )
        self.assertEqual(student.full_name, 'Kwame Nkansah Mensah')
        self.assertEqual(str(student), 'Kwame Nkansah Mensah (STU-2024-001)')


class EnrollmentTests(TestCase):
    """Tests for class group enrollment lookups."""

    def setUp(self):
        self.year = AcademicYear.objects.create(
            name='2024/2025',
            start_date=date(2024, 9, 1),
            end_date=date(2025, 7, 31),
        )
        self.class_group = ClassGroup.objects.create(form=1, section='A')
        self.student = Student.objects.create(
            first_name='Akosua', last_name='Darko', admission_number='STU-002'
        )

    def test_enrollment_for_returns_active(self):
        Enrollment.objects.create(
            student=self.student, academic_year=self.year, class_group=self.class_group
        )
        enrollment = self.student.enrollment_for(self.year)
        self.assertEqual(enrollment.class_group, self.class_group)

    def test_enrollment_for_ignores_withdrawn(self):
        Enrollment.objects.create(
            student=self.student,
            academic_year=self.year,
            class_group=self.class_group,
            status=Enrollment.Status.WITHDRAWN,
        )
        self.assertIsNone(self.student.enrollment_for(self.year))
