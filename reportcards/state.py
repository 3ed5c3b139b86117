"""
Report workflow status.

The status of a report is never stored: it is derived from the report's
current contents every time it is needed. Only `finalized` is persisted.

    IN_PROGRESS             some subject comment is missing
    AWAITING_CLASS_TEACHER  all subject comments present, overall comment missing
    READY_TO_FINALIZE       everything present, not finalized
    FINALIZED               terminal
"""
from collections import namedtuple

from django.db import models

from .exceptions import NotReadyError


class ReportStatus(models.TextChoices):
    IN_PROGRESS = 'IN_PROGRESS', 'In Progress'
    AWAITING_CLASS_TEACHER = 'AWAITING_CLASS_TEACHER', 'Awaiting Class Teacher'
    READY_TO_FINALIZE = 'READY_TO_FINALIZE', 'Ready to Finalize'
    FINALIZED = 'FINALIZED', 'Finalized'


# Forward successors of each status. Only READY_TO_FINALIZE -> FINALIZED is
# an explicit, gated transition; the others follow from comment writes.
PERMITTED_TRANSITIONS = {
    ReportStatus.IN_PROGRESS: frozenset({ReportStatus.AWAITING_CLASS_TEACHER}),
    ReportStatus.AWAITING_CLASS_TEACHER: frozenset({ReportStatus.READY_TO_FINALIZE}),
    ReportStatus.READY_TO_FINALIZE: frozenset({ReportStatus.FINALIZED}),
    ReportStatus.FINALIZED: frozenset(),
}


Readiness = namedtuple('Readiness', ['status', 'missing_subjects', 'overall_comment_missing'])


def _is_blank(text):
    return not (text and text.strip())


def assess(report):
    """
    Inspect a report and return its Readiness: the derived status, the
    names of subjects still lacking a comment and whether the overall
    comment is missing.
    """
    subject_reports = list(report.subject_reports.all())
    missing_subjects = tuple(
        sr.subject.name for sr in subject_reports if _is_blank(sr.comment)
    )
    overall_missing = _is_blank(report.overall_comment)

    if report.finalized:
        status = ReportStatus.FINALIZED
    elif not subject_reports or missing_subjects:
        status = ReportStatus.IN_PROGRESS
    elif overall_missing:
        status = ReportStatus.AWAITING_CLASS_TEACHER
    else:
        status = ReportStatus.READY_TO_FINALIZE

    return Readiness(status, missing_subjects, overall_missing)


def derive_status(report):
    return assess(report).status


def permitted_transitions(status):
    return PERMITTED_TRANSITIONS[ReportStatus(status)]


def ensure_ready(report):
    """Raise NotReadyError unless the report can be finalized right now."""
    readiness = assess(report)
    if readiness.status != ReportStatus.READY_TO_FINALIZE:
        raise NotReadyError(
            missing_subjects=readiness.missing_subjects,
            overall_comment_missing=readiness.overall_comment_missing,
            report_id=report.pk,
        )
    return readiness
