"""
Management command to generate report cards for a class.
Usage: python manage.py generate_reports --class-group 3 --term 2 --user office@school.test
"""
from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandError

from core.models import Term
from reportcards.exceptions import ReportError
from reportcards.permissions import Actor
from reportcards.serializers import serialize_student_error
from reportcards.services import ReportLifecycleService


class Command(BaseCommand):
    help = 'Generate (or refresh) report cards for every student in a class group'

    def add_arguments(self, parser):
        parser.add_argument(
            '--class-group',
            type=int,
            required=True,
            help='ID of the class group',
        )
        parser.add_argument(
            '--term',
            type=int,
            help='ID of the term (defaults to the current term)',
        )
        parser.add_argument(
            '--user',
            type=str,
            required=True,
            help='Email of the administrator or clerk running the generation',
        )

    def handle(self, *args, **options):
        User = get_user_model()
        try:
            user = User.objects.get(email=options['user'])
        except User.DoesNotExist:
            raise CommandError(f"User '{options['user']}' not found.")

        if options.get('term'):
            term = Term.objects.filter(pk=options['term']).first()
        else:
            term = Term.get_current()
        if term is None:
            raise CommandError('Term not found.')

        try:
            result = ReportLifecycleService().generate_for_class(
                options['class_group'], term, Actor.from_user(user)
            )
        except ReportError as exc:
            raise CommandError(exc.message)

        for error in result.errors:
            details = serialize_student_error(error)
            self.stderr.write(f"  Student {details['student_id']}: {details['error']}")
        for warning in result.warnings:
            self.stdout.write(f"  Warning: {warning.message}")

        self.stdout.write(
            self.style.SUCCESS(
                f"Generated {len(result.reports)} reports for {term} "
                f"({len(result.skipped)} finalized skipped, {len(result.errors)} errors)"
            )
        )
