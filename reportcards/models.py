import uuid
from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator, MaxValueValidator
from django.core.exceptions import ValidationError
from django.db import models

from academics.models import ClassGroup, Subject, StudentSubjectEnrollment
from core.models import Term
from students.models import Student

from .grading import Grade, grade, quantize
from .state import derive_status


class Assessment(models.Model):
    """
    One scored event for a student in a subject: a coursework task or
    the end-of-term exam. Recorded by the subject teacher; the report
    engine only ever reads these.
    """
    class AssessmentType(models.TextChoices):
        COURSEWORK = 'COURSEWORK', 'Coursework'
        FINAL_EXAM = 'FINAL_EXAM', 'Final Exam'

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    student_subject = models.ForeignKey(
        StudentSubjectEnrollment,
        on_delete=models.CASCADE,
        related_name='assessments',
        db_index=True
    )
    assessment_type = models.CharField(
        max_length=12,
        choices=AssessmentType.choices,
        default=AssessmentType.COURSEWORK
    )
    name = models.CharField(
        max_length=100,
        blank=True,
        help_text='e.g., Quiz 1, Mid-term Test, End of Term Exam'
    )
    score = models.DecimalField(
        max_digits=6,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0'))],
        help_text='Points earned'
    )
    max_score = models.DecimalField(
        max_digits=6,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.01'))],
        help_text='Maximum points available'
    )
    term = models.ForeignKey(
        Term,
        on_delete=models.CASCADE,
        related_name='assessments',
        db_index=True
    )
    date = models.DateField()
    recorded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='recorded_assessments'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.student_subject} - {self.get_assessment_type_display()}: {self.score}/{self.max_score}"

    def clean(self):
        """Validate that score doesn't exceed max_score and the date is inside the term"""
        if self.score is not None and self.max_score is not None and self.score > self.max_score:
            raise ValidationError(
                f'Score ({self.score}) cannot exceed maximum score ({self.max_score})'
            )
        if self.term_id and self.date and not self.term.contains(self.date):
            raise ValidationError({'date': f'Assessment date must fall within {self.term}.'})

    class Meta:
        db_table = 'assessment'
        ordering = ['term', 'date', 'created_at']
        verbose_name = 'Assessment'
        verbose_name_plural = 'Assessments'
        indexes = [
            models.Index(fields=['student_subject', 'term'], name='assessment_subject_term_idx'),
        ]


class Report(models.Model):
    """
    A student's report card for one term. Built from subject reports,
    signed off by subject teachers and the class teacher, then finalized
    by the academic office after which it is read-only.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    student = models.ForeignKey(
        Student,
        on_delete=models.CASCADE,
        related_name='reports',
        db_index=True
    )
    class_group = models.ForeignKey(
        ClassGroup,
        on_delete=models.PROTECT,
        related_name='reports'
    )
    term = models.ForeignKey(
        Term,
        on_delete=models.CASCADE,
        related_name='reports',
        db_index=True
    )

    # Class teacher remark
    overall_comment = models.TextField(blank=True)
    overall_comment_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='overall_comments'
    )
    overall_commented_at = models.DateTimeField(null=True, blank=True)

    # Finalization
    finalized = models.BooleanField(default=False)
    finalized_at = models.DateTimeField(null=True, blank=True)
    finalized_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='finalized_reports'
    )

    generated_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.student} - {self.term}"

    @property
    def status(self):
        """Workflow status, always derived from the current field values."""
        return derive_status(self)

    @property
    def overall_average(self):
        """Mean final mark across subjects that have one."""
        marks = [
            sr.final_mark for sr in self.subject_reports.all()
            if sr.final_mark is not None
        ]
        if not marks:
            return None
        return quantize(sum(marks) / len(marks))

    @property
    def overall_grade(self):
        average = self.overall_average
        if average is None:
            return ''
        return grade(average)

    class Meta:
        db_table = 'report'
        ordering = ['term', 'class_group', 'student__last_name', 'student__first_name']
        verbose_name = 'Report'
        verbose_name_plural = 'Reports'
        constraints = [
            models.UniqueConstraint(fields=['student', 'term'], name='unique_report_per_student_term'),
        ]
        indexes = [
            models.Index(fields=['class_group', 'term'], name='report_class_term_idx'),
        ]


class SubjectReport(models.Model):
    """
    A student's result in one subject for the term: coursework and exam
    percentages, the blended final mark and grade, and the subject
    teacher's comment.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    report = models.ForeignKey(
        Report,
        on_delete=models.CASCADE,
        related_name='subject_reports',
        db_index=True
    )
    subject = models.ForeignKey(
        Subject,
        on_delete=models.PROTECT,
        related_name='subject_reports'
    )

    coursework_mark = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(0), MaxValueValidator(100)],
        help_text='Average coursework percentage'
    )
    exam_mark = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(0), MaxValueValidator(100)],
        help_text='Final exam percentage'
    )
    final_mark = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        null=True,
        blank=True,
        help_text='Weighted blend of coursework and exam'
    )
    final_grade = models.CharField(
        max_length=1,
        choices=Grade.choices,
        blank=True
    )

    comment = models.TextField(blank=True)
    comment_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='subject_comments'
    )
    commented_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    MARK_FIELDS = ('coursework_mark', 'exam_mark', 'final_mark', 'final_grade')

    def __str__(self):
        return f"{self.report.student} - {self.subject.name}: {self.final_mark} ({self.final_grade or '-'})"

    @property
    def has_comment(self):
        return bool(self.comment and self.comment.strip())

    class Meta:
        db_table = 'subject_report'
        ordering = ['report', '-subject__is_core', 'subject__name']
        verbose_name = 'Subject Report'
        verbose_name_plural = 'Subject Reports'
        constraints = [
            models.UniqueConstraint(fields=['report', 'subject'], name='unique_subject_per_report'),
        ]


class ReportActivityLog(models.Model):
    """
    Audit log for report lifecycle events. Comments are overwritten in
    place, so previous text is kept here.
    """
    class Action(models.TextChoices):
        GENERATED = 'GENERATED', 'Generated'
        REGENERATED = 'REGENERATED', 'Regenerated'
        SUBJECT_COMMENT = 'SUBJECT_COMMENT', 'Subject comment'
        OVERALL_COMMENT = 'OVERALL_COMMENT', 'Overall comment'
        FINALIZED = 'FINALIZED', 'Finalized'

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    report = models.ForeignKey(
        Report,
        on_delete=models.CASCADE,
        related_name='activity'
    )
    subject = models.ForeignKey(
        Subject,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+'
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name='report_activity'
    )
    action = models.CharField(max_length=20, choices=Action.choices)
    old_value = models.TextField(blank=True)
    new_value = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.get_action_display()} on {self.report_id} by {self.user}"

    class Meta:
        db_table = 'report_activity_log'
        ordering = ['-created_at']
        verbose_name = 'Report Activity'
        verbose_name_plural = 'Report Activity'
        indexes = [
            models.Index(fields=['report', '-created_at'], name='activity_report_created_idx'),
        ]
