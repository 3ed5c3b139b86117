"""
Errors raised by the report card engine.

Every error carries enough context (report, subject, actor) for the API
layer to build a precise message. None of them is transient, so nothing
here is ever retried.
"""


class ReportError(Exception):
    """Base class for report lifecycle errors."""

    code = 'report_error'
    default_message = 'The report operation failed.'

    def __init__(self, message=None, *, report_id=None, subject_id=None, actor=None):
        self.report_id = report_id
        self.subject_id = subject_id
        self.actor = actor
        super().__init__(message or self.default_message)

    @property
    def message(self):
        return str(self)

    def as_dict(self):
        data = {'error': self.message, 'code': self.code}
        if self.report_id is not None:
            data['report_id'] = str(self.report_id)
        if self.subject_id is not None:
            data['subject_id'] = self.subject_id
        return data


class InvalidMarkError(ReportError, ValueError):
    """A score is outside [0, max_score] or max_score is not positive."""

    code = 'invalid_mark'
    default_message = 'Invalid assessment mark.'


class NoAssessmentsError(ReportError):
    """
    Advisory: a subject has no assessments for the term.
    Collected as a warning during generation, never raised by the engine.
    """

    code = 'no_assessments'
    default_message = 'No assessments recorded for this subject.'

    def __init__(self, message=None, *, student_id=None, **kwargs):
        self.student_id = student_id
        super().__init__(message, **kwargs)

    def as_dict(self):
        data = super().as_dict()
        if self.student_id is not None:
            data['student_id'] = self.student_id
        return data


class ReportLockedError(ReportError):
    """A mutation was attempted on a finalized report."""

    code = 'report_locked'
    default_message = 'This report has been finalized and can no longer be changed.'


class NotReadyError(ReportError):
    """Finalization was attempted before every comment was in place."""

    code = 'not_ready'

    def __init__(self, missing_subjects=(), overall_comment_missing=False, **kwargs):
        self.missing_subjects = tuple(missing_subjects)
        self.overall_comment_missing = overall_comment_missing
        super().__init__(self._build_message(), **kwargs)

    def _build_message(self):
        parts = []
        if self.missing_subjects:
            parts.append(f"missing subject comments: {', '.join(self.missing_subjects)}")
        if self.overall_comment_missing:
            parts.append('missing overall comment')
        if not parts:
            parts.append('report has no subjects')
        return 'Report is not ready to finalize (' + '; '.join(parts) + ').'

    def as_dict(self):
        data = super().as_dict()
        data['missing_subjects'] = list(self.missing_subjects)
        data['overall_comment_missing'] = self.overall_comment_missing
        return data


class Forbidden(ReportError):
    """
    The actor may not perform the operation. The message is deliberately
    generic and never says whether the report exists.
    """

    code = 'forbidden'
    default_message = 'You do not have permission to perform this action.'

    def as_dict(self):
        return {'error': self.message, 'code': self.code}


class ReportNotFoundError(ReportError):
    code = 'not_found'
    default_message = 'Report not found.'


class SubjectNotOnReportError(ReportError):
    code = 'subject_not_on_report'
    default_message = 'This subject is not part of the report.'


class EnrollmentError(ReportError):
    """The student has no class group for the term being reported."""

    code = 'enrollment_error'
    default_message = 'Student has no class enrollment for this term.'

    def __init__(self, message=None, *, student_id=None, **kwargs):
        self.student_id = student_id
        super().__init__(message, **kwargs)


class InvalidCommentError(ReportError):
    code = 'invalid_comment'
    default_message = 'Comment must not be blank.'
