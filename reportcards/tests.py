"""
Tests for the reportcards app.

Focuses on:
- Grade calculation and mark aggregation
- Report assembly, regeneration and the retain-if-commented policy
- Derived workflow status and finalization
- Comment permissions and the report lock
- JSON API, Celery tasks and the management command
"""
import json
import threading
import time
import uuid
from datetime import date
from decimal import Decimal
from io import StringIO
from types import SimpleNamespace
from unittest import mock

from django.contrib.auth import get_user_model
from django.contrib.auth.models import AnonymousUser
from django.core.management import call_command
from django.core.exceptions import ValidationError
from django.core.management.base import CommandError
from django.db import IntegrityError, connection, transaction
from django.test import SimpleTestCase, TestCase, TransactionTestCase, override_settings, skipUnlessDBFeature
from django.urls import reverse
from django.utils import timezone

from accounts.models import Role
from academics.models import ClassGroup, ClassSubject, StudentSubjectEnrollment, Subject
from core.models import AcademicYear, Term
from students.models import Enrollment, Student
from teachers.models import Teacher

from .aggregation import SubjectReportAggregator
from .assembly import ReportAssembler
from .exceptions import (
    EnrollmentError, Forbidden, InvalidCommentError, InvalidMarkError,
    NoAssessmentsError, NotReadyError, ReportLockedError, ReportNotFoundError,
    SubjectNotOnReportError,
)
from .grading import Grade, final_mark, grade, normalize, performance_remark
from .models import Assessment, Report, ReportActivityLog, SubjectReport
from .permissions import ROLE_CAPABILITIES, Actor, Capability, CommentAuthorizationGuard
from .services import ReportLifecycleService
from .state import ReportStatus, assess, ensure_ready, permitted_transitions
from .tasks import generate_class_reports_task, generate_term_reports_task

User = get_user_model()


# ============ Grade calculation ============

class GradeCalculatorTest(SimpleTestCase):

    def test_grade_boundaries(self):
        self.assertEqual(grade(80), Grade.A)
        self.assertEqual(grade(79.999), Grade.B)
        self.assertEqual(grade(70), Grade.B)
        self.assertEqual(grade(60), Grade.C)
        self.assertEqual(grade(50), Grade.D)
        self.assertEqual(grade(40), Grade.E)
        self.assertEqual(grade(39.999), Grade.U)
        self.assertEqual(grade(0), Grade.U)
        self.assertEqual(grade(100), Grade.A)

    def test_grade_is_monotonic(self):
        order = [Grade.U, Grade.E, Grade.D, Grade.C, Grade.B, Grade.A]
        previous = 0
        for tenths in range(0, 1001):
            rank = order.index(grade(Decimal(tenths) / 10))
            self.assertGreaterEqual(rank, previous)
            previous = rank

    def test_out_of_range_mark_rejected(self):
        with self.assertRaises(InvalidMarkError):
            grade(100.5)
        with self.assertRaises(InvalidMarkError):
            grade(-1)
        with self.assertRaises(InvalidMarkError):
            normalize(5, 0)
        with self.assertRaises(InvalidMarkError):
            normalize(21, 20)

    def test_non_finite_mark_rejected(self):
        with self.assertRaises(InvalidMarkError):
            grade(Decimal('NaN'))
        with self.assertRaises(InvalidMarkError):
            grade('Infinity')
        with self.assertRaises(InvalidMarkError):
            normalize('NaN', 20)

    def test_normalize(self):
        self.assertEqual(normalize(18, 20), Decimal('90'))
        self.assertEqual(normalize(Decimal('7.5'), 10), Decimal('75'))

    def test_final_mark_single_component(self):
        self.assertEqual(final_mark(coursework_mark=72), Decimal('72.00'))
        self.assertEqual(final_mark(exam_mark=Decimal('56')), Decimal('56.00'))

    def test_final_mark_none_without_components(self):
        self.assertIsNone(final_mark())

    def test_final_mark_blend(self):
        self.assertEqual(final_mark(85, 56), Decimal('64.70'))

    @override_settings(REPORTCARDS_COURSEWORK_WEIGHT=50, REPORTCARDS_EXAM_WEIGHT=50)
    def test_final_mark_uses_configured_weights(self):
        self.assertEqual(final_mark(80, 60), Decimal('70.00'))

    def test_performance_remark(self):
        self.assertTrue(performance_remark(Decimal('85')).startswith('Excellent'))
        self.assertTrue(performance_remark(Decimal('30')).startswith('Poor'))
        self.assertEqual(performance_remark(None), '')


class SubjectReportAggregatorTest(SimpleTestCase):

    def make(self, kind, score, max_score, day=1, created_minute=0):
        return SimpleNamespace(
            assessment_type=kind,
            score=Decimal(score),
            max_score=Decimal(max_score),
            date=date(2024, 11, day),
            created_at=timezone.now().replace(minute=created_minute),
        )

    def test_coursework_mean_and_exam(self):
        marks = SubjectReportAggregator().aggregate([
            self.make('COURSEWORK', 18, 20),
            self.make('COURSEWORK', 16, 20),
            self.make('FINAL_EXAM', 56, 100),
        ])
        self.assertEqual(marks.coursework_mark, Decimal('85.00'))
        self.assertEqual(marks.exam_mark, Decimal('56.00'))
        self.assertEqual(marks.final_mark, Decimal('64.70'))
        self.assertEqual(marks.final_grade, Grade.C)

    def test_latest_exam_wins(self):
        marks = SubjectReportAggregator().aggregate([
            self.make('FINAL_EXAM', 40, 100, day=10, created_minute=5),
            self.make('FINAL_EXAM', 90, 100, day=12, created_minute=1),
            self.make('FINAL_EXAM', 70, 100, day=12, created_minute=3),
        ])
        self.assertEqual(marks.exam_mark, Decimal('70.00'))

    def test_no_assessments(self):
        marks = SubjectReportAggregator().aggregate([])
        self.assertIsNone(marks.final_mark)
        self.assertEqual(marks.final_grade, '')


# ============ Fixtures ============

class ReportFixtureMixin:
    """A Form 2 A class with a math teacher, an English teacher and a class teacher."""

    def setUp(self):
        self.year = AcademicYear.objects.create(
            name='2024/2025', start_date=date(2024, 9, 1), end_date=date(2025, 7, 31), is_current=True
        )
        self.term = Term.objects.create(
            academic_year=self.year, name='Term 1', term_number=1,
            start_date=date(2024, 9, 1), end_date=date(2024, 12, 20), is_current=True,
        )

        self.admin_user = User.objects.create_school_admin('head@school.test', 'pass12345')
        self.clerk_user = User.objects.create_clerk('office@school.test', 'pass12345')
        self.math_user = User.objects.create_teacher('math@school.test', 'pass12345')
        self.english_user = User.objects.create_teacher('english@school.test', 'pass12345')
        self.class_user = User.objects.create_class_teacher('form@school.test', 'pass12345')
        self.outsider_user = User.objects.create_teacher('outsider@school.test', 'pass12345')

        self.math_teacher = Teacher.objects.create(
            user=self.math_user, first_name='Kwame', last_name='Mensah', staff_id='T-01')
        self.english_teacher = Teacher.objects.create(
            user=self.english_user, first_name='Esi', last_name='Asante', staff_id='T-02')
        self.form_teacher = Teacher.objects.create(
            user=self.class_user, first_name='Yaw', last_name='Darko', staff_id='T-03')
        self.outsider_teacher = Teacher.objects.create(
            user=self.outsider_user, first_name='Abena', last_name='Ofori', staff_id='T-04')

        self.class_group = ClassGroup.objects.create(form=2, section='A', class_teacher=self.form_teacher)
        self.other_class = ClassGroup.objects.create(form=2, section='B')

        self.math = Subject.objects.create(name='Mathematics', short_name='MATH')
        self.english = Subject.objects.create(name='English Language', short_name='ENG')
        self.french = Subject.objects.create(name='French', short_name='FRE', is_core=False)

        self.math_allocation = ClassSubject.objects.create(
            class_group=self.class_group, subject=self.math, teacher=self.math_teacher)
        self.english_allocation = ClassSubject.objects.create(
            class_group=self.class_group, subject=self.english, teacher=self.english_teacher)
        self.french_allocation = ClassSubject.objects.create(
            class_group=self.class_group, subject=self.french, teacher=self.math_teacher)
        # The outsider teaches maths, but to the other section
        ClassSubject.objects.create(
            class_group=self.other_class, subject=self.math, teacher=self.outsider_teacher)

        self.student = self.enroll_student('Kofi', 'Boateng', 'STU-001')
        self.math_enrollment = self.enroll_subject(self.student, self.math_allocation)
        self.english_enrollment = self.enroll_subject(self.student, self.english_allocation)

        self.service = ReportLifecycleService()
        self.admin = Actor.from_user(self.admin_user)
        self.clerk = Actor.from_user(self.clerk_user)
        self.math_actor = Actor.from_user(self.math_user)
        self.english_actor = Actor.from_user(self.english_user)
        self.class_actor = Actor.from_user(self.class_user)
        self.outsider = Actor.from_user(self.outsider_user)

    def enroll_student(self, first_name, last_name, admission_number, class_group=None):
        student = Student.objects.create(
            first_name=first_name, last_name=last_name, admission_number=admission_number)
        Enrollment.objects.create(
            student=student, academic_year=self.year, class_group=class_group or self.class_group)
        return student

    def enroll_subject(self, student, allocation):
        return StudentSubjectEnrollment.objects.create(
            student=student, class_subject=allocation, term=self.term)

    def add_assessment(self, enrollment, kind, score, max_score, day=15):
        return Assessment.objects.create(
            student_subject=enrollment,
            assessment_type=kind,
            score=Decimal(str(score)),
            max_score=Decimal(str(max_score)),
            term=self.term,
            date=date(2024, 11, day),
        )

    def add_standard_marks(self):
        self.add_assessment(self.math_enrollment, 'COURSEWORK', 18, 20)
        self.add_assessment(self.math_enrollment, 'COURSEWORK', 16, 20)
        self.add_assessment(self.math_enrollment, 'FINAL_EXAM', 56, 100)
        self.add_assessment(self.english_enrollment, 'COURSEWORK', 72, 100)

    def generate(self):
        return ReportAssembler().assemble(self.student, self.term).report

    def subject_report(self, report, subject):
        return SubjectReport.objects.get(report=report, subject=subject)

    def complete_comments(self, report):
        self.service.add_subject_comment(report.pk, self.math.pk, 'Strong term.', self.math_actor)
        self.service.add_subject_comment(report.pk, self.english.pk, 'Reads widely.', self.english_actor)
        self.service.add_overall_comment(report.pk, 'A focused student.', self.class_actor)


# ============ Assembly ============

class ReportAssemblerTest(ReportFixtureMixin, TestCase):

    def test_generate_creates_subject_reports(self):
        self.add_standard_marks()
        result = ReportAssembler().assemble(self.student, self.term)

        self.assertTrue(result.created)
        self.assertEqual(result.report.class_group, self.class_group)
        self.assertFalse(result.report.finalized)
        self.assertEqual(result.report.subject_reports.count(), 2)
        self.assertEqual(result.errors, [])

    def test_scenario_marks(self):
        self.add_standard_marks()
        report = self.generate()

        math = self.subject_report(report, self.math)
        self.assertEqual(math.coursework_mark, Decimal('85.00'))
        self.assertEqual(math.exam_mark, Decimal('56.00'))
        self.assertEqual(math.final_mark, Decimal('64.70'))
        self.assertEqual(math.final_grade, 'C')

    def test_only_coursework_counts_fully(self):
        self.add_standard_marks()
        report = self.generate()

        english = self.subject_report(report, self.english)
        self.assertIsNone(english.exam_mark)
        self.assertEqual(english.final_mark, Decimal('72.00'))
        self.assertEqual(english.final_grade, 'B')

    def test_overall_average(self):
        self.add_standard_marks()
        report = self.generate()
        self.assertEqual(report.overall_average, Decimal('68.35'))
        self.assertEqual(report.overall_grade, Grade.C)

    def test_subject_without_assessments_warns(self):
        self.add_assessment(self.math_enrollment, 'FINAL_EXAM', 60, 100)
        result = ReportAssembler().assemble(self.student, self.term)

        english = self.subject_report(result.report, self.english)
        self.assertIsNone(english.final_mark)
        self.assertEqual(english.final_grade, '')
        self.assertEqual(len(result.warnings), 1)
        self.assertIsInstance(result.warnings[0], NoAssessmentsError)
        self.assertEqual(result.warnings[0].subject_id, self.english.pk)

    def test_regeneration_is_idempotent(self):
        self.add_standard_marks()
        report = self.generate()
        before = {sr.subject_id: (sr.final_mark, sr.updated_at) for sr in report.subject_reports.all()}

        result = ReportAssembler().assemble(self.student, self.term)

        self.assertFalse(result.created)
        self.assertEqual(result.report.pk, report.pk)
        after = {sr.subject_id: (sr.final_mark, sr.updated_at) for sr in report.subject_reports.all()}
        self.assertEqual(before, after)
        self.assertEqual(Report.objects.count(), 1)

    def test_regeneration_preserves_comments_and_updates_marks(self):
        self.add_standard_marks()
        report = self.generate()
        self.service.add_subject_comment(report.pk, self.math.pk, 'Good effort.', self.math_actor)

        self.add_assessment(self.math_enrollment, 'FINAL_EXAM', 80, 100, day=20)
        ReportAssembler().assemble(self.student, self.term)

        math = self.subject_report(report, self.math)
        self.assertEqual(math.comment, 'Good effort.')
        self.assertEqual(math.exam_mark, Decimal('80.00'))

    def test_regeneration_adds_new_subject(self):
        report = self.generate()
        self.enroll_subject(self.student, self.french_allocation)

        ReportAssembler().assemble(self.student, self.term)

        self.assertTrue(report.subject_reports.filter(subject=self.french).exists())

    def test_dropped_subject_removed_unless_commented(self):
        report = self.generate()
        self.service.add_subject_comment(report.pk, self.english.pk, 'Keep reading.', self.english_actor)
        StudentSubjectEnrollment.objects.filter(
            pk__in=[self.math_enrollment.pk, self.english_enrollment.pk]
        ).update(is_active=False)

        ReportAssembler().assemble(self.student, self.term)

        subjects = set(report.subject_reports.values_list('subject__name', flat=True))
        self.assertEqual(subjects, {'English Language'})

    def test_invalid_mark_is_local_to_subject(self):
        self.add_assessment(self.math_enrollment, 'COURSEWORK', 25, 20)
        self.add_assessment(self.english_enrollment, 'COURSEWORK', 72, 100)

        result = ReportAssembler().assemble(self.student, self.term)

        self.assertEqual(len(result.errors), 1)
        self.assertIsInstance(result.errors[0].error, InvalidMarkError)
        self.assertEqual(result.errors[0].error.subject_id, self.math.pk)
        self.assertIsNone(self.subject_report(result.report, self.math).final_mark)
        self.assertEqual(self.subject_report(result.report, self.english).final_mark, Decimal('72.00'))

    def test_student_without_class_enrollment(self):
        loner = Student.objects.create(first_name='Ama', last_name='Kusi', admission_number='STU-099')
        with self.assertRaises(EnrollmentError):
            ReportAssembler().assemble(loner, self.term)
        self.assertFalse(Report.objects.filter(student=loner).exists())

    def test_finalized_report_is_locked(self):
        report = self.generate()
        Report.objects.filter(pk=report.pk).update(finalized=True)
        with self.assertRaises(ReportLockedError):
            ReportAssembler().assemble(self.student, self.term)

    def test_report_created_by_concurrent_run_is_reused(self):
        existing = self.generate()
        # The lookup misses, as if another run inserted the row after it
        stale = mock.Mock()
        stale.filter.return_value.first.return_value = None
        locked = Report.objects.all().select_for_update()

        with mock.patch.object(Report.objects, 'select_for_update', side_effect=[stale, locked]):
            result = ReportAssembler().assemble(self.student, self.term)

        self.assertFalse(result.created)
        self.assertEqual(result.report.pk, existing.pk)
        self.assertEqual(Report.objects.count(), 1)
        self.assertEqual(result.report.subject_reports.count(), 2)

    def test_generation_is_logged(self):
        report = self.generate()
        ReportAssembler().assemble(self.student, self.term)
        actions = list(report.activity.order_by('created_at').values_list('action', flat=True))
        self.assertEqual(actions, [ReportActivityLog.Action.GENERATED, ReportActivityLog.Action.REGENERATED])


class ClassAssemblyTest(ReportFixtureMixin, TestCase):

    def test_batch_collects_errors_and_skips_finalized(self):
        second = self.enroll_student('Akua', 'Adjei', 'STU-002')
        second_math = self.enroll_subject(second, self.math_allocation)
        self.add_assessment(second_math, 'COURSEWORK', 30, 20)
        third = self.enroll_student('Yaa', 'Amoah', 'STU-003')
        self.enroll_subject(third, self.english_allocation)

        finalized = self.generate()
        Report.objects.filter(pk=finalized.pk).update(finalized=True, overall_comment='Done.')

        result = ReportAssembler().assemble_class(self.class_group, self.term)

        self.assertEqual({r.student_id for r in result.reports}, {second.pk, third.pk})
        self.assertEqual([r.pk for r in result.skipped], [finalized.pk])
        self.assertEqual(len(result.errors), 1)
        self.assertEqual(result.errors[0].student_id, second.pk)
        finalized.refresh_from_db()
        self.assertEqual(finalized.overall_comment, 'Done.')

    def test_database_error_is_local_to_student(self):
        second = self.enroll_student('Akua', 'Adjei', 'STU-002')
        self.enroll_subject(second, self.math_allocation)
        original = ReportAssembler.assemble

        def assemble(assembler, student, term, user_id=None):
            if student.pk == second.pk:
                raise IntegrityError('UNIQUE constraint failed: report.student_id, report.term_id')
            return original(assembler, student, term, user_id=user_id)

        with mock.patch.object(ReportAssembler, 'assemble', autospec=True, side_effect=assemble):
            result = ReportAssembler().assemble_class(self.class_group, self.term)

        self.assertEqual([r.student_id for r in result.reports], [self.student.pk])
        self.assertEqual(len(result.errors), 1)
        self.assertEqual(result.errors[0].student_id, second.pk)
        self.assertIsInstance(result.errors[0].error, IntegrityError)
        self.assertTrue(Report.objects.filter(student=self.student).exists())

    def test_only_students_of_the_class(self):
        self.enroll_student('Efua', 'Nyarko', 'STU-010', class_group=self.other_class)
        result = ReportAssembler().assemble_class(self.class_group, self.term)
        self.assertEqual([r.student_id for r in result.reports], [self.student.pk])


# ============ Status ============

class ReportStatusTest(ReportFixtureMixin, TestCase):

    def test_status_follows_comments(self):
        report = self.generate()
        self.assertEqual(report.status, ReportStatus.IN_PROGRESS)

        self.service.add_subject_comment(report.pk, self.math.pk, 'Strong term.', self.math_actor)
        self.assertEqual(report.status, ReportStatus.IN_PROGRESS)

        self.service.add_subject_comment(report.pk, self.english.pk, 'Reads widely.', self.english_actor)
        self.assertEqual(report.status, ReportStatus.AWAITING_CLASS_TEACHER)

        self.service.add_overall_comment(report.pk, 'A focused student.', self.class_actor)
        report.refresh_from_db()
        self.assertEqual(report.status, ReportStatus.READY_TO_FINALIZE)

        self.service.finalize(report.pk, self.clerk)
        report.refresh_from_db()
        self.assertEqual(report.status, ReportStatus.FINALIZED)

    def test_whitespace_comment_counts_as_missing(self):
        report = self.generate()
        SubjectReport.objects.filter(report=report).update(comment='   ')
        self.assertEqual(assess(report).missing_subjects, ('English Language', 'Mathematics'))

    def test_report_without_subjects_is_in_progress(self):
        StudentSubjectEnrollment.objects.all().delete()
        report = self.generate()
        Report.objects.filter(pk=report.pk).update(overall_comment='Settled in well.')
        report.refresh_from_db()
        self.assertEqual(report.status, ReportStatus.IN_PROGRESS)
        with self.assertRaises(NotReadyError) as ctx:
            ensure_ready(report)
        self.assertIn('no subjects', ctx.exception.message)

    def test_permitted_transitions(self):
        self.assertEqual(
            permitted_transitions(ReportStatus.READY_TO_FINALIZE), {ReportStatus.FINALIZED})
        self.assertEqual(permitted_transitions(ReportStatus.FINALIZED), frozenset())


# ============ Permissions ============

class FakeDirectory:

    def __init__(self, assignments=(), class_teachers=()):
        self.assignments = set(assignments)
        self.class_teachers = set(class_teachers)

    def is_assigned_teacher(self, user_id, subject_id, form, section):
        return (user_id, subject_id, form, section) in self.assignments

    def is_class_teacher_of(self, user_id, class_group_id):
        return (user_id, class_group_id) in self.class_teachers

    def teaches_in_class(self, user_id, class_group_id):
        return False


class CommentAuthorizationGuardTest(SimpleTestCase):

    def setUp(self):
        self.report = SimpleNamespace(
            class_group=SimpleNamespace(form=2, section='A'), class_group_id=7)
        self.guard = CommentAuthorizationGuard(FakeDirectory(
            assignments={(1, 10, 2, 'A')},
            class_teachers={(2, 7)},
        ))

    def test_every_role_has_capabilities(self):
        self.assertEqual(set(ROLE_CAPABILITIES), set(Role))

    def test_anonymous_actor_has_no_roles(self):
        actor = Actor.from_user(AnonymousUser())
        self.assertIsNone(actor.user_id)
        self.assertEqual(actor.roles, frozenset())
        self.assertFalse(actor.is_staff)

    def test_subject_comment_needs_exact_assignment(self):
        teacher = Actor(user_id=1, roles={Role.TEACHER})
        self.assertTrue(self.guard.can_comment_subject(teacher, self.report, 10))
        self.assertFalse(self.guard.can_comment_subject(teacher, self.report, 11))

        other_section = SimpleNamespace(class_group=SimpleNamespace(form=2, section='B'), class_group_id=8)
        self.assertFalse(self.guard.can_comment_subject(teacher, other_section, 10))

    def test_subject_comment_needs_teacher_role(self):
        clerk = Actor(user_id=1, roles={Role.CLERK})
        self.assertFalse(self.guard.can_comment_subject(clerk, self.report, 10))

    def test_overall_comment_needs_class_teacher_of_record(self):
        self.assertTrue(self.guard.can_comment_overall(Actor(2, {Role.CLASS_TEACHER}), self.report))
        self.assertFalse(self.guard.can_comment_overall(Actor(2, {Role.TEACHER}), self.report))
        self.assertFalse(self.guard.can_comment_overall(Actor(3, {Role.CLASS_TEACHER}), self.report))

    def test_generate_and_view_all_for_office_staff(self):
        for role in (Role.ADMIN, Role.CLERK):
            actor = Actor(5, {role})
            self.assertTrue(self.guard.can_generate(actor))
            self.assertTrue(self.guard.can_view(actor, self.report))
            self.assertTrue(actor.has(Capability.FINALIZE))
        self.assertFalse(self.guard.can_generate(Actor(1, {Role.TEACHER})))


# ============ Lifecycle service ============

class ReportLifecycleServiceTest(ReportFixtureMixin, TestCase):

    def test_generate_requires_office_role(self):
        with self.assertRaises(Forbidden):
            self.service.generate_for_class(self.class_group.pk, self.term, self.math_actor)
        self.assertFalse(Report.objects.exists())

    def test_generate_for_class(self):
        self.add_standard_marks()
        result = self.service.generate_for_class(self.class_group.pk, self.term, self.clerk)
        self.assertEqual(len(result.reports), 1)
        self.assertEqual(result.reports[0].activity.get().user, self.clerk_user)

    def test_generate_unknown_class_group(self):
        with self.assertRaises(ReportNotFoundError):
            self.service.generate_for_class(9999, self.term, self.admin)

    def test_assigned_teacher_comments(self):
        report = self.generate()
        subject_report = self.service.add_subject_comment(
            report.pk, self.math.pk, '  Works hard.  ', self.math_actor)

        self.assertEqual(subject_report.comment, 'Works hard.')
        self.assertEqual(subject_report.comment_by, self.math_user)
        self.assertIsNotNone(subject_report.commented_at)
        entry = report.activity.get(action=ReportActivityLog.Action.SUBJECT_COMMENT)
        self.assertEqual(entry.new_value, 'Works hard.')

    def test_unassigned_teacher_forbidden(self):
        report = self.generate()
        self.service.add_subject_comment(report.pk, self.math.pk, 'Original.', self.math_actor)

        for actor in (self.english_actor, self.outsider, self.class_actor):
            with self.assertRaises(Forbidden):
                self.service.add_subject_comment(report.pk, self.math.pk, 'Hijack.', actor)

        self.assertEqual(self.subject_report(report, self.math).comment, 'Original.')

    def test_two_teachers_comment_different_subjects(self):
        report = self.generate()
        self.service.add_subject_comment(report.pk, self.math.pk, 'Maths note.', self.math_actor)
        self.service.add_subject_comment(report.pk, self.english.pk, 'English note.', self.english_actor)

        self.assertEqual(self.subject_report(report, self.math).comment, 'Maths note.')
        self.assertEqual(self.subject_report(report, self.english).comment, 'English note.')

    def test_comment_overwrites_and_logs_previous(self):
        report = self.generate()
        self.service.add_subject_comment(report.pk, self.math.pk, 'First.', self.math_actor)
        self.service.add_subject_comment(report.pk, self.math.pk, 'Second.', self.math_actor)

        self.assertEqual(self.subject_report(report, self.math).comment, 'Second.')
        self.assertTrue(report.activity.filter(old_value='First.', new_value='Second.').exists())

    def test_comment_on_newly_enrolled_subject_builds_it(self):
        report = self.generate()
        self.enroll_subject(self.student, self.french_allocation)

        subject_report = self.service.add_subject_comment(
            report.pk, self.french.pk, 'Bon travail.', self.math_actor)

        self.assertEqual(subject_report.subject, self.french)
        self.assertEqual(report.subject_reports.count(), 3)

    def test_comment_on_subject_not_taken(self):
        report = self.generate()
        with self.assertRaises(SubjectNotOnReportError):
            self.service.add_subject_comment(report.pk, self.french.pk, 'Bon travail.', self.math_actor)

    def test_blank_and_long_comments_rejected(self):
        report = self.generate()
        with self.assertRaises(InvalidCommentError):
            self.service.add_subject_comment(report.pk, self.math.pk, '   ', self.math_actor)
        with override_settings(REPORTCARDS_COMMENT_MAX_LENGTH=10):
            with self.assertRaises(InvalidCommentError):
                self.service.add_overall_comment(report.pk, 'x' * 11, self.class_actor)

    def test_overall_comment_only_by_class_teacher(self):
        report = self.generate()
        with self.assertRaises(Forbidden):
            self.service.add_overall_comment(report.pk, 'Nice.', self.math_actor)
        with self.assertRaises(Forbidden):
            self.service.add_overall_comment(report.pk, 'Nice.', self.admin)

        report = self.service.add_overall_comment(report.pk, 'Nice.', self.class_actor)
        self.assertEqual(report.overall_comment, 'Nice.')
        self.assertEqual(report.overall_comment_by, self.class_user)

    def test_finalize_not_ready(self):
        report = self.generate()
        self.service.add_subject_comment(report.pk, self.math.pk, 'Strong term.', self.math_actor)

        with self.assertRaises(NotReadyError) as ctx:
            self.service.finalize(report.pk, self.clerk)

        self.assertEqual(ctx.exception.missing_subjects, ('English Language',))
        self.assertTrue(ctx.exception.overall_comment_missing)
        report.refresh_from_db()
        self.assertFalse(report.finalized)

    def test_finalize_missing_overall_comment(self):
        report = self.generate()
        self.service.add_subject_comment(report.pk, self.math.pk, 'Strong term.', self.math_actor)
        self.service.add_subject_comment(report.pk, self.english.pk, 'Reads widely.', self.english_actor)

        with self.assertRaises(NotReadyError) as ctx:
            self.service.finalize(report.pk, self.admin)
        self.assertEqual(ctx.exception.missing_subjects, ())
        self.assertTrue(ctx.exception.overall_comment_missing)

    def test_finalize_requires_office_role(self):
        report = self.generate()
        self.complete_comments(report)
        with self.assertRaises(Forbidden):
            self.service.finalize(report.pk, self.class_actor)

    def test_finalized_report_rejects_every_change(self):
        report = self.generate()
        self.complete_comments(report)
        report = self.service.finalize(report.pk, self.clerk)
        self.assertTrue(report.finalized)
        self.assertEqual(report.finalized_by, self.clerk_user)

        with self.assertRaises(ReportLockedError):
            self.service.add_subject_comment(report.pk, self.math.pk, 'Late.', self.math_actor)
        with self.assertRaises(ReportLockedError):
            self.service.add_overall_comment(report.pk, 'Late.', self.class_actor)
        with self.assertRaises(ReportLockedError):
            self.service.regenerate(report.pk, self.admin)
        with self.assertRaises(ReportLockedError):
            self.service.finalize(report.pk, self.admin)

        result = self.service.generate_for_class(self.class_group.pk, self.term, self.admin)
        self.assertEqual([r.pk for r in result.skipped], [report.pk])
        self.assertEqual(self.subject_report(report, self.math).comment, 'Strong term.')

    def test_missing_report(self):
        missing = uuid.uuid4()
        with self.assertRaises(ReportNotFoundError):
            self.service.get_report(missing, self.clerk)
        with self.assertRaises(Forbidden):
            self.service.get_report(missing, self.math_actor)
        with self.assertRaises(Forbidden):
            self.service.add_subject_comment(missing, self.math.pk, 'Hello.', self.math_actor)

    def test_view_permissions(self):
        report = self.generate()
        for actor in (self.admin, self.clerk, self.math_actor, self.class_actor):
            self.assertEqual(self.service.get_report(report.pk, actor).pk, report.pk)
        with self.assertRaises(Forbidden):
            self.service.get_report(report.pk, self.outsider)
        with self.assertRaises(Forbidden):
            self.service.class_reports(self.class_group.pk, self.term, self.outsider)

    def test_student_reports_filtered(self):
        report = self.generate()
        self.assertEqual([r.pk for r in self.service.student_reports(self.student.pk, self.math_actor)], [report.pk])
        self.assertEqual(self.service.student_reports(self.student.pk, self.outsider), [])

    def test_regenerate(self):
        report = self.generate()
        self.add_standard_marks()
        with self.assertRaises(Forbidden):
            self.service.regenerate(report.pk, self.math_actor)

        result = self.service.regenerate(report.pk, self.admin)
        self.assertFalse(result.created)
        self.assertEqual(self.subject_report(report, self.math).final_mark, Decimal('64.70'))


# ============ JSON API ============

@override_settings(SECURE_SSL_REDIRECT=False)
class ReportApiTest(ReportFixtureMixin, TestCase):

    def post_json(self, url, payload=None):
        return self.client.post(url, data=json.dumps(payload or {}), content_type='application/json')

    def test_requires_login(self):
        report = self.generate()
        response = self.client.get(reverse('reportcards:detail', args=[report.pk]))
        self.assertEqual(response.status_code, 302)

    def test_generate_endpoint(self):
        self.add_standard_marks()
        self.client.force_login(self.clerk_user)
        url = reverse('reportcards:generate_class', args=[self.class_group.pk, self.term.pk])

        response = self.client.post(url)

        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(len(data['reports']), 1)
        self.assertEqual(data['errors'], [])
        self.assertEqual(data['skipped'], [])

    def test_generate_forbidden_for_teacher(self):
        self.client.force_login(self.math_user)
        url = reverse('reportcards:generate_class', args=[self.class_group.pk, self.term.pk])
        response = self.client.post(url)
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()['code'], 'forbidden')

    def test_generate_requires_post(self):
        self.client.force_login(self.clerk_user)
        url = reverse('reportcards:generate_class', args=[self.class_group.pk, self.term.pk])
        self.assertEqual(self.client.get(url).status_code, 405)

    def test_report_detail(self):
        self.add_standard_marks()
        report = self.generate()
        self.client.force_login(self.math_user)

        response = self.client.get(reverse('reportcards:detail', args=[report.pk]))

        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data['status'], 'IN_PROGRESS')
        self.assertEqual(data['overall_average'], '68.35')
        self.assertEqual(data['overall_grade'], 'C')
        self.assertTrue(data['suggested_remark'].startswith('Good'))
        self.assertEqual(len(data['subjects']), 2)
        self.assertEqual(data['activity'][0]['action'], 'GENERATED')

    def test_subject_comment_endpoint(self):
        report = self.generate()
        self.client.force_login(self.math_user)
        url = reverse('reportcards:subject_comment', args=[report.pk])

        response = self.post_json(url, {'subject_id': self.math.pk, 'comment': 'Careful work.'})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['subject_report']['comment'], 'Careful work.')

    def test_subject_comment_accepts_form_data(self):
        report = self.generate()
        self.client.force_login(self.english_user)
        url = reverse('reportcards:subject_comment', args=[report.pk])

        response = self.client.post(url, {'subject_id': self.english.pk, 'comment': 'Fluent.'})

        self.assertEqual(response.status_code, 200)

    def test_subject_comment_forbidden(self):
        report = self.generate()
        self.client.force_login(self.english_user)
        url = reverse('reportcards:subject_comment', args=[report.pk])

        response = self.post_json(url, {'subject_id': self.math.pk, 'comment': 'Not mine.'})

        self.assertEqual(response.status_code, 403)
        self.assertNotIn('report_id', response.json())

    def test_subject_comment_validation(self):
        report = self.generate()
        self.client.force_login(self.math_user)
        url = reverse('reportcards:subject_comment', args=[report.pk])

        response = self.post_json(url, {'comment': 'No subject.'})
        self.assertEqual(response.status_code, 400)
        self.assertIn('subject_id', response.json()['fields'])

        response = self.client.post(url, data='[1, 2]', content_type='application/json')
        self.assertEqual(response.status_code, 400)

    def test_finalize_flow(self):
        report = self.generate()
        self.client.force_login(self.clerk_user)
        url = reverse('reportcards:finalize', args=[report.pk])

        response = self.client.post(url)
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()['code'], 'not_ready')
        self.assertTrue(response.json()['overall_comment_missing'])

        self.complete_comments(report)
        response = self.client.post(url)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['report']['status'], 'FINALIZED')

        response = self.client.post(url)
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()['code'], 'report_locked')

    def test_overall_comment_endpoint(self):
        report = self.generate()
        self.client.force_login(self.class_user)
        url = reverse('reportcards:overall_comment', args=[report.pk])

        response = self.post_json(url, {'comment': 'Well done.'})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['report']['overall_comment'], 'Well done.')

    def test_missing_report_status_depends_on_role(self):
        url = reverse('reportcards:detail', args=[uuid.uuid4()])

        self.client.force_login(self.clerk_user)
        self.assertEqual(self.client.get(url).status_code, 404)

        self.client.force_login(self.math_user)
        self.assertEqual(self.client.get(url).status_code, 403)

    def test_class_and_student_listings(self):
        report = self.generate()
        self.client.force_login(self.class_user)

        response = self.client.get(reverse('reportcards:class_reports', args=[self.class_group.pk, self.term.pk]))
        self.assertEqual([r['id'] for r in response.json()['reports']], [str(report.pk)])

        response = self.client.get(reverse('reportcards:student_reports', args=[self.student.pk]))
        self.assertEqual(len(response.json()['reports']), 1)

    def test_regenerate_endpoint(self):
        report = self.generate()
        self.client.force_login(self.admin_user)
        response = self.client.post(reverse('reportcards:regenerate', args=[report.pk]))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['report']['id'], str(report.pk))


# ============ Tasks & command ============

class ReportTasksTest(ReportFixtureMixin, TestCase):

    def test_generate_class_reports_task(self):
        self.add_standard_marks()
        result = generate_class_reports_task(self.class_group.pk, self.term.pk, self.clerk_user.pk)
        self.assertTrue(result['success'])
        self.assertEqual(result['generated'], 1)
        self.assertTrue(Report.objects.filter(student=self.student, term=self.term).exists())

    def test_task_refuses_teacher(self):
        result = generate_class_reports_task(self.class_group.pk, self.term.pk, self.math_user.pk)
        self.assertFalse(result['success'])
        self.assertEqual(result['code'], 'forbidden')

    def test_task_unknown_user(self):
        result = generate_class_reports_task(self.class_group.pk, self.term.pk, 987654)
        self.assertFalse(result['success'])

    def test_term_task_fans_out_per_class(self):
        with mock.patch('reportcards.tasks.group') as group:
            group.return_value.apply_async.return_value.id = 'group-1'
            result = generate_term_reports_task(self.term.pk, self.clerk_user.pk)

        self.assertEqual(result['queued'], 2)
        self.assertEqual(len(list(group.call_args.args[0])), 2)


class GenerateReportsCommandTest(ReportFixtureMixin, TestCase):

    def test_command_generates_reports(self):
        self.add_standard_marks()
        out = StringIO()
        call_command(
            'generate_reports',
            '--class-group', str(self.class_group.pk),
            '--term', str(self.term.pk),
            '--user', self.clerk_user.email,
            stdout=out, stderr=StringIO(),
        )
        self.assertIn('Generated 1 reports', out.getvalue())

    def test_command_defaults_to_current_term(self):
        out = StringIO()
        call_command(
            'generate_reports', '--class-group', str(self.class_group.pk),
            '--user', self.admin_user.email, stdout=out, stderr=StringIO(),
        )
        self.assertTrue(Report.objects.filter(term=self.term).exists())

    def test_command_unknown_user(self):
        with self.assertRaises(CommandError):
            call_command('generate_reports', '--class-group', str(self.class_group.pk), '--user', 'nobody@school.test')

    def test_command_refuses_teacher(self):
        with self.assertRaises(CommandError):
            call_command(
                'generate_reports', '--class-group', str(self.class_group.pk),
                '--user', self.math_user.email,
            )


class AssessmentValidationTest(ReportFixtureMixin, TestCase):

    def test_score_above_maximum(self):
        assessment = Assessment(
            student_subject=self.math_enrollment, score=Decimal('21'), max_score=Decimal('20'),
            term=self.term, date=date(2024, 10, 1))
        with self.assertRaises(ValidationError):
            assessment.full_clean()

    def test_date_outside_term(self):
        assessment = Assessment(
            student_subject=self.math_enrollment, score=Decimal('15'), max_score=Decimal('20'),
            term=self.term, date=date(2025, 2, 1))
        with self.assertRaises(ValidationError) as ctx:
            assessment.full_clean()
        self.assertIn('date', ctx.exception.message_dict)


# ============ Admin ============

@override_settings(SECURE_SSL_REDIRECT=False)
class ReportAdminTest(ReportFixtureMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.superuser = User.objects.create_superuser('root@school.test', 'pass12345')
        self.client.force_login(self.superuser)
        self.report = self.generate()

    def test_comments_are_not_editable(self):
        response = self.client.get(reverse('admin:reportcards_report_change', args=[self.report.pk]))

        self.assertEqual(response.status_code, 200)
        self.assertNotContains(response, 'name="overall_comment"')
        self.assertNotContains(response, 'name="subject_reports-0-comment"')

    def test_change_form_post_leaves_comments_alone(self):
        response = self.client.post(
            reverse('admin:reportcards_report_change', args=[self.report.pk]),
            {'overall_comment': 'Written in the admin.'},
        )

        self.assertEqual(response.status_code, 403)
        self.report.refresh_from_db()
        self.assertEqual(self.report.overall_comment, '')
        self.assertIsNone(self.report.overall_comment_by)
        self.assertEqual(self.report.status, ReportStatus.IN_PROGRESS)

    def test_reports_cannot_be_deleted(self):
        response = self.client.post(
            reverse('admin:reportcards_report_delete', args=[self.report.pk]), {'post': 'yes'})

        self.assertEqual(response.status_code, 403)
        self.assertTrue(Report.objects.filter(pk=self.report.pk).exists())


# ============ Row locking ============

@skipUnlessDBFeature('has_select_for_update')
class ReportLockingTest(ReportFixtureMixin, TransactionTestCase):
    """Overlapping writers on one report, each on its own connection."""

    def setUp(self):
        super().setUp()
        self.report = self.generate()

    def run_together(self, *calls):
        """
        Start every call while the report row is held, then release it so
        they contend for the lock. Returns each call's result or exception.
        """
        outcomes = [None] * len(calls)

        def worker(index, call):
            try:
                outcomes[index] = call()
            except Exception as exc:
                outcomes[index] = exc
            finally:
                connection.close()

        threads = [threading.Thread(target=worker, args=(i, call)) for i, call in enumerate(calls)]
        with transaction.atomic():
            Report.objects.select_for_update().get(pk=self.report.pk)
            for thread in threads:
                thread.start()
            time.sleep(0.3)
        for thread in threads:
            thread.join(timeout=10)
        return outcomes

    def test_finalize_and_comment_are_exclusive(self):
        self.complete_comments(self.report)

        comment, finalized = self.run_together(
            lambda: self.service.add_subject_comment(self.report.pk, self.math.pk, 'Revised.', self.math_actor),
            lambda: self.service.finalize(self.report.pk, self.clerk),
        )

        self.assertIsInstance(finalized, Report)
        self.report.refresh_from_db()
        self.assertTrue(self.report.finalized)
        math = self.subject_report(self.report, self.math)
        finalized_at = self.report.activity.get(action=ReportActivityLog.Action.FINALIZED).created_at
        if isinstance(comment, ReportLockedError):
            self.assertEqual(math.comment, 'Strong term.')
        else:
            self.assertIsInstance(comment, SubjectReport)
            self.assertEqual(math.comment, 'Revised.')
            self.assertLessEqual(math.commented_at, finalized_at)
        self.assertFalse(
            self.report.activity.filter(
                action=ReportActivityLog.Action.SUBJECT_COMMENT, created_at__gt=finalized_at
            ).exists()
        )

    def test_overlapping_comments_on_different_subjects(self):
        maths, english = self.run_together(
            lambda: self.service.add_subject_comment(self.report.pk, self.math.pk, 'Maths note.', self.math_actor),
            lambda: self.service.add_subject_comment(
                self.report.pk, self.english.pk, 'English note.', self.english_actor),
        )

        self.assertIsInstance(maths, SubjectReport)
        self.assertIsInstance(english, SubjectReport)
        self.assertEqual(self.subject_report(self.report, self.math).comment, 'Maths note.')
        self.assertEqual(self.subject_report(self.report, self.english).comment, 'English note.')
        self.assertEqual(
            self.report.activity.filter(action=ReportActivityLog.Action.SUBJECT_COMMENT).count(), 2)
