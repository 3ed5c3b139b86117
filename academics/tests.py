"""
Tests for the academics app.

Focuses on:
- Class group naming
- Subject allocation uniqueness
- Subject enrollment per term
"""
from datetime import date

from django.db import IntegrityError
from django.test import TestCase

from academics.models import ClassGroup, Subject, ClassSubject, StudentSubjectEnrollment
from students.models import Student
from teachers.models import Teacher
from core.models import AcademicYear, Term


class ClassGroupModelTests(TestCase):

    def test_name_is_generated(self):
        class_group = ClassGroup.objects.create(form=2, section='a')
        self.assertEqual(class_group.name, 'F2-A')
        self.assertEqual(class_group.section, 'A')
        self.assertEqual(class_group.level_display, 'Form 2 A')

    def test_form_section_unique(self):
        ClassGroup.objects.create(form=1, section='B')
        with self.assertRaises(IntegrityError):
            ClassGroup.objects.create(form=1, section='B')


class SubjectEnrollmentTests(TestCase):

    def setUp(self):
        self.year = AcademicYear.objects.create(
            name='2024/2025',
            start_date=date(2024, 9, 1),
            end_date=date(2025, 7, 31),
        )
        self.term = Term.objects.create(
            academic_year=self.year,
            name='Term 1',
            term_number=1,
            start_date=date(2024, 9, 1),
            end_date=date(2024, 12, 20),
        )
        self.teacher = Teacher.objects.create(first_name='Ama', last_name='Owusu', staff_id='T-1')
        self.class_group = ClassGroup.objects.create(form=3, section='A', class_teacher=self.teacher)
        self.subject = Subject.objects.create(name='Mathematics', short_name='MATH')
        self.class_subject = ClassSubject.objects.create(
            class_group=self.class_group, subject=self.subject, teacher=self.teacher
        )
        self.student = Student.objects.create(
            first_name='Kofi', last_name='Boateng', admission_number='STU-001'
        )

    def test_allocation_str(self):
        self.assertEqual(str(self.class_subject), 'Mathematics - F3-A')

    def test_enrollment_exposes_subject(self):
        enrollment = StudentSubjectEnrollment.objects.create(
            student=self.student, class_subject=self.class_subject, term=self.term
        )
        self.assertEqual(enrollment.subject, self.subject)
        self.assertTrue(enrollment.is_active)

    def test_one_enrollment_per_subject_per_term(self):
        StudentSubjectEnrollment.objects.create(
            student=self.student, class_subject=self.class_subject, term=self.term
        )
        with self.assertRaises(IntegrityError):
            StudentSubjectEnrollment.objects.create(
                student=self.student, class_subject=self.class_subject, term=self.term
            )

    def test_class_teacher_relation(self):
        self.assertEqual(list(self.teacher.supervised_classes.all()), [self.class_group])
