"""
Building and rebuilding report cards.

A report is (re)built from the student's current subject enrollments and
assessments. Comments already written survive regeneration, finalized
reports are never touched, and one bad subject or student never stops the
rest of the run.
"""
import logging
from collections import namedtuple

from django.core.exceptions import ValidationError
from django.db import DatabaseError, IntegrityError, transaction
from django.utils import timezone

from .aggregation import SubjectReportAggregator
from .exceptions import EnrollmentError, InvalidMarkError, ReportError, ReportLockedError
from .models import Report, ReportActivityLog, SubjectReport
from .stores import AssessmentStore, EnrollmentStore

logger = logging.getLogger(__name__)


AssemblyResult = namedtuple('AssemblyResult', ['report', 'created', 'warnings', 'errors'])
ClassAssemblyResult = namedtuple('ClassAssemblyResult', ['reports', 'errors', 'warnings', 'skipped'])
StudentError = namedtuple('StudentError', ['student_id', 'error'])


class ReportAssembler:

    def __init__(self, assessments=None, enrollments=None, aggregator=None):
        self.assessments = assessments or AssessmentStore()
        self.enrollments = enrollments or EnrollmentStore()
        self.aggregator = aggregator or SubjectReportAggregator()

    def assemble(self, student, term, user_id=None):
        """
        Create or refresh the report for one student and term.

        Raises EnrollmentError when the student has no class group for the
        term's academic year and ReportLockedError when the report is
        already finalized. Bad marks in a single subject are returned in
        `errors` and leave that subject's previous marks in place.
        """
        class_group = self.enrollments.class_group_of(student.pk, term)
        if class_group is None:
            raise EnrollmentError(
                f"{student} has no class enrollment for {term}",
                student_id=student.pk,
            )

        now = timezone.now()
        with transaction.atomic():
            report, created = self._lock_or_create(student, term, class_group, now)
            if report.finalized:
                raise ReportLockedError(report_id=report.pk)
            if not created:
                report.class_group = class_group
                report.generated_at = now
                report.save(update_fields=['class_group', 'generated_at', 'updated_at'])

            warnings, errors = [], []
            existing = {
                sr.subject_id: sr
                for sr in SubjectReport.objects.filter(report=report).select_related('subject')
            }

            enrolled_ids = set()
            for subject in self.enrollments.enrolled_subjects(student.pk, term):
                enrolled_ids.add(subject.pk)
                subject_report = existing.get(subject.pk) or SubjectReport(report=report, subject=subject)
                self._refresh(subject_report, student, term, warnings, errors)

            removed = []
            for subject_id, subject_report in existing.items():
                if subject_id in enrolled_ids:
                    continue
                if subject_report.has_comment:
                    # No longer taken but already commented on: keep it current
                    self._refresh(subject_report, student, term, warnings, errors)
                else:
                    removed.append(subject_report.subject.name)
                    subject_report.delete()

            ReportActivityLog.objects.create(
                report=report,
                user_id=user_id,
                action=(ReportActivityLog.Action.GENERATED if created
                        else ReportActivityLog.Action.REGENERATED),
                new_value=f"{len(enrolled_ids)} subjects",
                old_value=', '.join(removed),
            )

        logger.info(
            f"{'Generated' if created else 'Regenerated'} report {report.pk} for {student} "
            f"({term}): {len(enrolled_ids)} subjects, {len(warnings)} warnings, {len(errors)} errors"
        )
        return AssemblyResult(report, created, warnings, errors)

    def _lock_or_create(self, student, term, class_group, now):
        """
        Return the locked report for student and term, creating it if absent.

        A concurrent run may insert the same report between the lookup and
        the insert; the unique constraint then fails inside its own
        savepoint and the row the other run created is locked instead.
        """
        report = Report.objects.select_for_update().filter(student=student, term=term).first()
        if report is not None:
            return report, False
        try:
            with transaction.atomic():
                report = Report.objects.create(
                    student=student,
                    class_group=class_group,
                    term=term,
                    generated_at=now,
                )
        except IntegrityError:
            report = Report.objects.select_for_update().get(student=student, term=term)
            return report, False
        return report, True

    def _refresh(self, subject_report, student, term, warnings, errors):
        """Recompute one subject's marks and save it if anything changed."""
        is_new = subject_report._state.adding
        assessments = self.assessments.list_assessments(student.pk, subject_report.subject_id, term)
        try:
            changed, subject_warnings = self.aggregator.apply(
                subject_report, assessments, student_id=student.pk
            )
        except InvalidMarkError as exc:
            exc.report_id = subject_report.report_id
            exc.subject_id = subject_report.subject_id
            errors.append(StudentError(student.pk, exc))
            logger.warning(
                f"Invalid marks for {student} in {subject_report.subject.name}: {exc}"
            )
            if is_new:
                subject_report.save()
            return

        warnings.extend(subject_warnings)
        if is_new:
            subject_report.save()
        elif changed:
            subject_report.save(update_fields=[*SubjectReport.MARK_FIELDS, 'updated_at'])

    def add_subject(self, report, subject):
        """Build and save the SubjectReport for a subject missing from report."""
        warnings, errors = [], []
        subject_report = SubjectReport(report=report, subject=subject)
        self._refresh(subject_report, report.student, report.term, warnings, errors)
        return subject_report

    def assemble_class(self, class_group, term, user_id=None):
        """
        Build reports for every student actively enrolled in class_group.

        Each student is handled in its own savepoint. Finalized reports are
        listed in `skipped`; any other failure, database errors included, is
        collected in `errors` and the run moves on to the next student.
        """
        reports, errors, warnings, skipped = [], [], [], []

        for student in self.enrollments.students_in_class(class_group.pk, term):
            try:
                with transaction.atomic():
                    outcome = self.assemble(student, term, user_id=user_id)
            except ReportLockedError:
                skipped.append(Report.objects.get(student=student, term=term))
                continue
            except (ReportError, ValidationError, DatabaseError) as exc:
                logger.warning(f"Report generation failed for {student} ({term}): {exc}")
                errors.append(StudentError(student.pk, exc))
                continue

            reports.append(outcome.report)
            warnings.extend(outcome.warnings)
            errors.extend(outcome.errors)

        logger.info(
            f"Class {class_group} {term}: {len(reports)} reports built, "
            f"{len(skipped)} finalized skipped, {len(errors)} errors"
        )
        return ClassAssemblyResult(reports, errors, warnings, skipped)
