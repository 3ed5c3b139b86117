"""
Plain-dict renderings of reports and engine results for JsonResponse.
"""
from . import config
from .exceptions import ReportError
from .grading import performance_remark
from .state import assess


def _decimal(value):
    return str(value) if value is not None else None


def _timestamp(value):
    return value.isoformat() if value else None


def serialize_subject_report(subject_report):
    return {
        'id': str(subject_report.pk),
        'subject_id': subject_report.subject_id,
        'subject': subject_report.subject.name,
        'is_core': subject_report.subject.is_core,
        'coursework_mark': _decimal(subject_report.coursework_mark),
        'exam_mark': _decimal(subject_report.exam_mark),
        'final_mark': _decimal(subject_report.final_mark),
        'final_grade': subject_report.final_grade,
        'comment': subject_report.comment,
        'comment_by': subject_report.comment_by_id,
        'commented_at': _timestamp(subject_report.commented_at),
    }


def serialize_activity(entry):
    return {
        'action': entry.action,
        'subject_id': entry.subject_id,
        'user': entry.user_id,
        'old_value': entry.old_value,
        'new_value': entry.new_value,
        'created_at': _timestamp(entry.created_at),
    }


def serialize_report(report, include_activity=False):
    readiness = assess(report)
    average = report.overall_average
    data = {
        'id': str(report.pk),
        'student': {
            'id': report.student_id,
            'name': report.student.full_name,
            'admission_number': report.student.admission_number,
        },
        'class_group': {'id': report.class_group_id, 'name': report.class_group.name},
        'term': {'id': report.term_id, 'name': str(report.term)},
        'status': readiness.status.value,
        'missing_subject_comments': list(readiness.missing_subjects),
        'overall_comment_missing': readiness.overall_comment_missing,
        'subjects': [serialize_subject_report(sr) for sr in report.subject_reports.all()],
        'overall_average': _decimal(average),
        'overall_grade': report.overall_grade,
        'suggested_remark': performance_remark(average),
        'overall_comment': report.overall_comment,
        'overall_comment_by': report.overall_comment_by_id,
        'overall_commented_at': _timestamp(report.overall_commented_at),
        'finalized': report.finalized,
        'finalized_at': _timestamp(report.finalized_at),
        'finalized_by': report.finalized_by_id,
        'generated_at': _timestamp(report.generated_at),
    }
    if include_activity:
        limit = int(config.ACTIVITY_LOG_DISPLAY_LIMIT)
        data['activity'] = [serialize_activity(entry) for entry in report.activity.all()[:limit]]
    return data


def serialize_error(error):
    """Error payload for ReportError and Django ValidationError alike."""
    if isinstance(error, ReportError):
        return error.as_dict()
    return {'error': '; '.join(getattr(error, 'messages', [str(error)])), 'code': 'invalid'}


def serialize_student_error(student_error):
    return {'student_id': student_error.student_id, **serialize_error(student_error.error)}


def serialize_class_result(result):
    return {
        'reports': [serialize_report(report) for report in result.reports],
        'errors': [serialize_student_error(error) for error in result.errors],
        'warnings': [warning.as_dict() for warning in result.warnings],
        'skipped': [str(report.pk) for report in result.skipped],
    }
