from django.core.exceptions import ValidationError
from django.db import models, transaction


class AcademicYear(models.Model):
    """
    A school year such as 2024/2025. Class enrollments are recorded per
    academic year; at most one year is flagged as current.
    """
    name = models.CharField(
        max_length=50,
        unique=True,
        help_text="e.g., 2024/2025"
    )
    start_date = models.DateField()
    end_date = models.DateField()
    is_current = models.BooleanField(
        default=False,
        help_text="Only one academic year can be current at a time"
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-start_date']
        verbose_name = "Academic Year"
        verbose_name_plural = "Academic Years"

    def __str__(self):
        return self.name

    def clean(self):
        if self.start_date and self.end_date and self.start_date >= self.end_date:
            raise ValidationError({'end_date': 'The academic year must end after it starts.'})

    def save(self, *args, **kwargs):
        with transaction.atomic():
            if self.is_current:
                AcademicYear.objects.filter(is_current=True).exclude(pk=self.pk).update(is_current=False)
            super().save(*args, **kwargs)

    @classmethod
    def get_current(cls):
        return cls.objects.filter(is_current=True).first()


class Term(models.Model):
    """
    A reporting period inside an academic year. Each student gets one
    report per term.
    """
    class Number(models.IntegerChoices):
        FIRST = 1, 'First'
        SECOND = 2, 'Second'
        THIRD = 3, 'Third'

    academic_year = models.ForeignKey(
        AcademicYear,
        on_delete=models.CASCADE,
        related_name='terms'
    )
    name = models.CharField(
        max_length=50,
        help_text="e.g., Term 1"
    )
    term_number = models.PositiveSmallIntegerField(
        choices=Number.choices,
        default=Number.FIRST,
        verbose_name="Term Number"
    )
    start_date = models.DateField()
    end_date = models.DateField()
    is_current = models.BooleanField(
        default=False,
        help_text="Only one term can be current at a time"
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['academic_year', 'term_number']
        verbose_name = "Term"
        verbose_name_plural = "Terms"
        unique_together = ['academic_year', 'term_number']

    def __str__(self):
        return f"{self.name} - {self.academic_year.name}"

    def clean(self):
        errors = {}
        if self.start_date and self.end_date and self.start_date >= self.end_date:
            errors['end_date'] = 'The term must end after it starts.'
        year = self.academic_year if self.academic_year_id else None
        if year and self.start_date and self.end_date:
            if self.start_date < year.start_date or self.end_date > year.end_date:
                errors['start_date'] = f'Term dates must fall within {year.name}.'
        if errors:
            raise ValidationError(errors)

    def save(self, *args, **kwargs):
        with transaction.atomic():
            if self.is_current:
                Term.objects.filter(is_current=True).exclude(pk=self.pk).update(is_current=False)
            super().save(*args, **kwargs)

    def contains(self, day):
        """Whether a date falls inside this term."""
        return self.start_date <= day <= self.end_date

    @classmethod
    def get_current(cls):
        return cls.objects.filter(is_current=True).select_related('academic_year').first()
