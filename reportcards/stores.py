"""
Database-backed lookups the report engine depends on.

The engine reads assessments, enrollments and teaching assignments through
these small classes so that tests (or another storage backend) can hand it
something else with the same methods.
"""
from academics.models import ClassGroup, ClassSubject, Subject
from students.models import Enrollment, Student
from teachers.models import Teacher

from .models import Assessment


class AssessmentStore:
    """Read-only access to recorded assessments."""

    def list_assessments(self, student_id, subject_id, term):
        return list(Assessment.objects.filter(
            student_subject__student_id=student_id,
            student_subject__class_subject__subject_id=subject_id,
            term=term,
        ).order_by('date', 'created_at'))


class EnrollmentStore:
    """Which class group a student sits in and which subjects they take."""

    def enrolled_subjects(self, student_id, term):
        """Subjects the student actively takes this term, core subjects first."""
        return list(Subject.objects.filter(
            class_allocations__enrollments__student_id=student_id,
            class_allocations__enrollments__term=term,
            class_allocations__enrollments__is_active=True,
        ).distinct().order_by('-is_core', 'name'))

    def class_group_of(self, student_id, term):
        enrollment = Enrollment.objects.filter(
            student_id=student_id,
            academic_year_id=term.academic_year_id,
            status=Enrollment.Status.ACTIVE,
        ).select_related('class_group').first()
        return enrollment.class_group if enrollment else None

    def students_in_class(self, class_group_id, term):
        return list(Student.objects.filter(
            enrollments__class_group_id=class_group_id,
            enrollments__academic_year_id=term.academic_year_id,
            enrollments__status=Enrollment.Status.ACTIVE,
        ).order_by('last_name', 'first_name'))


class TeachingDirectory:
    """Teaching assignments and class teacher designations, keyed by user id."""

    def is_assigned_teacher(self, user_id, subject_id, form, section):
        return ClassSubject.objects.filter(
            teacher__user_id=user_id,
            teacher__status=Teacher.Status.ACTIVE,
            subject_id=subject_id,
            class_group__form=form,
            class_group__section=section,
            is_active=True,
        ).exists()

    def is_class_teacher_of(self, user_id, class_group_id):
        return ClassGroup.objects.filter(
            pk=class_group_id,
            class_teacher__user_id=user_id,
            class_teacher__status=Teacher.Status.ACTIVE,
        ).exists()

    def teaches_in_class(self, user_id, class_group_id):
        return ClassSubject.objects.filter(
            teacher__user_id=user_id,
            teacher__status=Teacher.Status.ACTIVE,
            class_group_id=class_group_id,
            is_active=True,
        ).exists()
