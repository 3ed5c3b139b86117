"""
Celery tasks for report generation.
Long class and whole-term runs are queued here instead of holding a request open.
"""
import logging

from celery import group, shared_task
from django.contrib.auth import get_user_model

from academics.models import ClassGroup
from core.models import Term

from .exceptions import ReportError
from .permissions import Actor
from .serializers import serialize_student_error
from .services import ReportLifecycleService

logger = logging.getLogger(__name__)


def _actor_for(user_id):
    User = get_user_model()
    try:
        return Actor.from_user(User.objects.get(pk=user_id))
    except User.DoesNotExist:
        return None


@shared_task(bind=True, max_retries=0)
def generate_class_reports_task(self, class_group_id, term_id, user_id):
    """
    Generate reports for one class group. Returns a summary dict that is
    safe to store in the result backend.
    """
    actor = _actor_for(user_id)
    if actor is None:
        logger.error(f"User {user_id} not found for report generation")
        return {'success': False, 'error': 'User not found'}

    try:
        term = Term.objects.get(pk=term_id)
    except Term.DoesNotExist:
        logger.error(f"Term {term_id} not found")
        return {'success': False, 'error': 'Term not found'}

    try:
        result = ReportLifecycleService().generate_for_class(class_group_id, term, actor)
    except ReportError as exc:
        logger.warning(f"Report generation for class {class_group_id} refused: {exc}")
        return {'success': False, **exc.as_dict()}

    return {
        'success': True,
        'class_group_id': class_group_id,
        'term_id': term_id,
        'generated': len(result.reports),
        'skipped': len(result.skipped),
        'warnings': len(result.warnings),
        'errors': [serialize_student_error(error) for error in result.errors],
    }


@shared_task(bind=True, max_retries=0)
def generate_term_reports_task(self, term_id, user_id):
    """Queue one generate_class_reports_task per active class group."""
    class_group_ids = list(
        ClassGroup.objects.filter(is_active=True).values_list('pk', flat=True)
    )
    if not class_group_ids:
        return {'success': True, 'queued': 0}

    job = group(
        generate_class_reports_task.s(class_group_id, term_id, user_id)
        for class_group_id in class_group_ids
    )
    result = job.apply_async()
    logger.info(f"Queued report generation for {len(class_group_ids)} classes (term {term_id})")
    return {'success': True, 'queued': len(class_group_ids), 'group_id': result.id}
