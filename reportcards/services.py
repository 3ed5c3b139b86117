"""
ReportLifecycleService: the one entry point for everything done to reports.

Views, Celery tasks and management commands all go through this class.
Every call names its Actor explicitly. Mutating calls lock the report row
and re-check permissions and the finalized flag inside that transaction.
"""
import logging

from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from academics.models import ClassGroup

from . import config
from .assembly import ReportAssembler
from .exceptions import (
    Forbidden, InvalidCommentError, ReportLockedError, ReportNotFoundError,
    SubjectNotOnReportError,
)
from .models import Report, ReportActivityLog, SubjectReport
from .permissions import Capability, CommentAuthorizationGuard
from .state import ensure_ready

logger = logging.getLogger(__name__)


class ReportLifecycleService:

    def __init__(self, assembler=None, guard=None):
        self.assembler = assembler or ReportAssembler()
        self.guard = guard or CommentAuthorizationGuard()

    # ============ Helpers ============

    def _deny(self, actor, action, report_id=None):
        logger.warning(f"Denied {action} on report {report_id} for user {actor.user_id}")
        raise Forbidden(report_id=report_id, actor=actor)

    def _get(self, report_id, actor, lock=False):
        """
        Fetch a report. A missing report is only reported as such to
        academic office staff; everyone else gets Forbidden.
        """
        queryset = Report.objects.select_for_update() if lock else Report.objects.all()
        try:
            return queryset.get(pk=report_id)
        except (Report.DoesNotExist, ValidationError):
            if actor.is_staff:
                raise ReportNotFoundError(report_id=report_id, actor=actor)
            self._deny(actor, 'lookup', report_id)

    def _clean_comment(self, comment, report_id=None):
        text = (comment or '').strip()
        if not text:
            raise InvalidCommentError(report_id=report_id)
        limit = int(config.COMMENT_MAX_LENGTH)
        if len(text) > limit:
            raise InvalidCommentError(
                f"Comment must be at most {limit} characters.", report_id=report_id
            )
        return text

    def _reports(self):
        return Report.objects.select_related(
            'student', 'class_group', 'term'
        ).prefetch_related('subject_reports__subject')

    # ============ Generation ============

    def generate_for_class(self, class_group_id, term, actor):
        """Build or refresh every report for a class. Finalized reports are skipped."""
        if not self.guard.can_generate(actor):
            self._deny(actor, 'generate')
        try:
            class_group = ClassGroup.objects.get(pk=class_group_id)
        except ClassGroup.DoesNotExist:
            raise ReportNotFoundError('Class group not found.', actor=actor)

        result = self.assembler.assemble_class(class_group, term, user_id=actor.user_id)
        logger.info(
            f"User {actor.user_id} generated {len(result.reports)} reports for {class_group} ({term})"
        )
        return result

    def regenerate(self, report_id, actor):
        """Refresh a single report from current enrollments and assessments."""
        report = self._get(report_id, actor)
        if not self.guard.can_generate(actor):
            self._deny(actor, 'regenerate', report_id)
        if report.finalized:
            raise ReportLockedError(report_id=report.pk, actor=actor)
        return self.assembler.assemble(report.student, report.term, user_id=actor.user_id)

    # ============ Reads ============

    def get_report(self, report_id, actor):
        report = self._get(report_id, actor)
        if not self.guard.can_view(actor, report):
            self._deny(actor, 'view', report_id)
        return self._reports().get(pk=report.pk)

    def class_reports(self, class_group_id, term, actor):
        if not self.guard.can_view_class(actor, class_group_id):
            self._deny(actor, 'view class')
        return list(self._reports().filter(class_group_id=class_group_id, term=term))

    def student_reports(self, student_id, actor):
        """All of a student's reports that the actor is allowed to see."""
        reports = self._reports().filter(student_id=student_id).order_by('-term__start_date')
        if actor.has(Capability.VIEW_ALL):
            return list(reports)
        return [report for report in reports if self.guard.can_view(actor, report)]

    # ============ Comments ============

    def add_subject_comment(self, report_id, subject_id, comment, actor):
        """Write (or overwrite) the subject teacher's comment for one subject."""
        text = self._clean_comment(comment, report_id)

        with transaction.atomic():
            report = self._get(report_id, actor, lock=True)
            if not self.guard.can_comment_subject(actor, report, subject_id):
                self._deny(actor, 'subject comment', report_id)
            if report.finalized:
                raise ReportLockedError(report_id=report.pk, subject_id=subject_id, actor=actor)

            subject_report = SubjectReport.objects.filter(
                report=report, subject_id=subject_id
            ).select_related('subject').first()
            if subject_report is None:
                enrolled = {
                    subject.pk: subject
                    for subject in self.assembler.enrollments.enrolled_subjects(
                        report.student_id, report.term
                    )
                }
                if subject_id not in enrolled:
                    raise SubjectNotOnReportError(
                        report_id=report.pk, subject_id=subject_id, actor=actor
                    )
                subject_report = self.assembler.add_subject(report, enrolled[subject_id])

            previous = subject_report.comment
            subject_report.comment = text
            subject_report.comment_by_id = actor.user_id
            subject_report.commented_at = timezone.now()
            subject_report.save(update_fields=['comment', 'comment_by', 'commented_at', 'updated_at'])

            ReportActivityLog.objects.create(
                report=report,
                subject_id=subject_id,
                user_id=actor.user_id,
                action=ReportActivityLog.Action.SUBJECT_COMMENT,
                old_value=previous,
                new_value=text,
            )

        logger.info(
            f"User {actor.user_id} commented on {subject_report.subject.name} for report {report.pk}"
        )
        return subject_report

    def add_overall_comment(self, report_id, comment, actor):
        """Write (or overwrite) the class teacher's overall comment."""
        text = self._clean_comment(comment, report_id)

        with transaction.atomic():
            report = self._get(report_id, actor, lock=True)
            if not self.guard.can_comment_overall(actor, report):
                self._deny(actor, 'overall comment', report_id)
            if report.finalized:
                raise ReportLockedError(report_id=report.pk, actor=actor)

            previous = report.overall_comment
            report.overall_comment = text
            report.overall_comment_by_id = actor.user_id
            report.overall_commented_at = timezone.now()
            report.save(update_fields=[
                'overall_comment', 'overall_comment_by', 'overall_commented_at', 'updated_at'
            ])

            ReportActivityLog.objects.create(
                report=report,
                user_id=actor.user_id,
                action=ReportActivityLog.Action.OVERALL_COMMENT,
                old_value=previous,
                new_value=text,
            )

        logger.info(f"User {actor.user_id} added overall comment to report {report.pk}")
        return report

    # ============ Finalization ============

    def finalize(self, report_id, actor):
        """Lock a complete report. After this every change is refused."""
        with transaction.atomic():
            report = self._get(report_id, actor, lock=True)
            if not actor.has(Capability.FINALIZE):
                self._deny(actor, 'finalize', report_id)
            if report.finalized:
                raise ReportLockedError(report_id=report.pk, actor=actor)
            ensure_ready(report)

            report.finalized = True
            report.finalized_at = timezone.now()
            report.finalized_by_id = actor.user_id
            report.save(update_fields=['finalized', 'finalized_at', 'finalized_by', 'updated_at'])

            ReportActivityLog.objects.create(
                report=report,
                user_id=actor.user_id,
                action=ReportActivityLog.Action.FINALIZED,
            )

        logger.info(f"User {actor.user_id} finalized report {report.pk}")
        return report
