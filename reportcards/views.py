import json
import logging
from functools import wraps

from django.contrib.auth.decorators import login_required
from django.shortcuts import get_object_or_404
from django.http import JsonResponse
from django.views.decorators.http import require_GET, require_POST

from core.models import Term

from .exceptions import (
    EnrollmentError, Forbidden, InvalidCommentError, InvalidMarkError,
    NotReadyError, ReportError, ReportLockedError, ReportNotFoundError,
    SubjectNotOnReportError,
)
from .forms import CommentForm, SubjectCommentForm
from .permissions import Actor
from .serializers import serialize_class_result, serialize_report, serialize_subject_report
from .services import ReportLifecycleService

logger = logging.getLogger(__name__)


ERROR_STATUS = {
    InvalidMarkError: 400,
    EnrollmentError: 400,
    InvalidCommentError: 400,
    Forbidden: 403,
    ReportNotFoundError: 404,
    SubjectNotOnReportError: 404,
    ReportLockedError: 409,
    NotReadyError: 409,
}


def status_for(error):
    for error_class, status in ERROR_STATUS.items():
        if isinstance(error, error_class):
            return status
    return 400


def report_api(view_func):
    """
    Run a view with the request's Actor and turn ReportError into a JSON
    error response with the matching HTTP status.
    """
    @wraps(view_func)
    def wrapper(request, *args, **kwargs):
        actor = Actor.from_user(request.user)
        try:
            return view_func(request, actor, *args, **kwargs)
        except ReportError as exc:
            return JsonResponse(exc.as_dict(), status=status_for(exc))
    return wrapper


def request_data(request):
    """Request body as a dict, from JSON or form encoding."""
    if request.content_type == 'application/json':
        try:
            data = json.loads(request.body or b'{}')
        except (ValueError, UnicodeDecodeError):
            return None
        return data if isinstance(data, dict) else None
    return request.POST


def form_errors(form):
    return JsonResponse({'error': 'Invalid input', 'code': 'invalid', 'fields': form.errors}, status=400)


def invalid_body():
    return JsonResponse({'error': 'Request body must be a JSON object', 'code': 'invalid'}, status=400)


# ============ Generation ============

@login_required
@require_POST
@report_api
def generate_class_reports(request, actor, class_group_id, term_id):
    """Generate or refresh every report for a class in a term."""
    term = get_object_or_404(Term, pk=term_id)
    result = ReportLifecycleService().generate_for_class(class_group_id, term, actor)
    return JsonResponse(serialize_class_result(result))


@login_required
@require_POST
@report_api
def regenerate_report(request, actor, report_id):
    outcome = ReportLifecycleService().regenerate(report_id, actor)
    return JsonResponse({
        'report': serialize_report(outcome.report),
        'warnings': [warning.as_dict() for warning in outcome.warnings],
        'errors': [error.error.as_dict() for error in outcome.errors],
    })


# ============ Reads ============

@login_required
@require_GET
@report_api
def report_detail(request, actor, report_id):
    report = ReportLifecycleService().get_report(report_id, actor)
    return JsonResponse(serialize_report(report, include_activity=True))


@login_required
@require_GET
@report_api
def class_reports(request, actor, class_group_id, term_id):
    term = get_object_or_404(Term, pk=term_id)
    reports = ReportLifecycleService().class_reports(class_group_id, term, actor)
    return JsonResponse({'reports': [serialize_report(report) for report in reports]})


@login_required
@require_GET
@report_api
def student_reports(request, actor, student_id):
    reports = ReportLifecycleService().student_reports(student_id, actor)
    return JsonResponse({'reports': [serialize_report(report) for report in reports]})


# ============ Comments & Finalization ============

@login_required
@require_POST
@report_api
def subject_comment(request, actor, report_id):
    data = request_data(request)
    if data is None:
        return invalid_body()
    form = SubjectCommentForm(data)
    if not form.is_valid():
        return form_errors(form)

    subject_report = ReportLifecycleService().add_subject_comment(
        report_id, form.cleaned_data['subject_id'], form.cleaned_data['comment'], actor
    )
    return JsonResponse({'success': True, 'subject_report': serialize_subject_report(subject_report)})


@login_required
@require_POST
@report_api
def overall_comment(request, actor, report_id):
    data = request_data(request)
    if data is None:
        return invalid_body()
    form = CommentForm(data)
    if not form.is_valid():
        return form_errors(form)

    report = ReportLifecycleService().add_overall_comment(
        report_id, form.cleaned_data['comment'], actor
    )
    return JsonResponse({'success': True, 'report': serialize_report(report)})


@login_required
@require_POST
@report_api
def finalize_report(request, actor, report_id):
    report = ReportLifecycleService().finalize(report_id, actor)
    return JsonResponse({'success': True, 'report': serialize_report(report)})
