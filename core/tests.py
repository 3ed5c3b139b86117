from datetime import date

from django.core.exceptions import ValidationError
from django.db import IntegrityError
from django.test import TestCase

from core.models import AcademicYear, Term


class AcademicYearTests(TestCase):

    def test_current_flag_moves(self):
        first = AcademicYear.objects.create(
            name='2023/2024', start_date=date(2023, 9, 1), end_date=date(2024, 7, 31), is_current=True)
        second = AcademicYear.objects.create(
            name='2024/2025', start_date=date(2024, 9, 1), end_date=date(2025, 7, 31), is_current=True)

        first.refresh_from_db()
        self.assertFalse(first.is_current)
        self.assertEqual(AcademicYear.get_current(), second)

    def test_no_current_year(self):
        self.assertIsNone(AcademicYear.get_current())

    def test_end_must_follow_start(self):
        year = AcademicYear(name='Backwards', start_date=date(2025, 7, 31), end_date=date(2024, 9, 1))
        with self.assertRaises(ValidationError) as ctx:
            year.full_clean()
        self.assertIn('end_date', ctx.exception.message_dict)


class TermTests(TestCase):

    def setUp(self):
        self.year = AcademicYear.objects.create(
            name='2024/2025', start_date=date(2024, 9, 1), end_date=date(2025, 7, 31))

    def make_term(self, number=1, start=date(2024, 9, 2), end=date(2024, 12, 20), **kwargs):
        return Term.objects.create(
            academic_year=self.year, name=f'Term {number}', term_number=number,
            start_date=start, end_date=end, **kwargs)

    def test_str_includes_year(self):
        self.assertEqual(str(self.make_term()), 'Term 1 - 2024/2025')

    def test_current_term(self):
        first = self.make_term(is_current=True)
        second = self.make_term(2, date(2025, 1, 6), date(2025, 4, 11), is_current=True)

        first.refresh_from_db()
        self.assertFalse(first.is_current)
        current = Term.get_current()
        self.assertEqual(current, second)
        self.assertEqual(current.academic_year, self.year)

    def test_one_term_number_per_year(self):
        self.make_term()
        with self.assertRaises(IntegrityError):
            self.make_term(start=date(2024, 10, 1))

    def test_contains(self):
        term = self.make_term()
        self.assertTrue(term.contains(date(2024, 9, 2)))
        self.assertTrue(term.contains(date(2024, 12, 20)))
        self.assertFalse(term.contains(date(2025, 1, 6)))

    def test_dates_must_sit_inside_year(self):
        term = Term(
            academic_year=self.year, name='Term 3', term_number=Term.Number.THIRD,
            start_date=date(2025, 5, 1), end_date=date(2025, 8, 30))
        with self.assertRaises(ValidationError) as ctx:
            term.full_clean()
        self.assertIn('start_date', ctx.exception.message_dict)
