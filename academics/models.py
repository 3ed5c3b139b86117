from django.db import models
from django.utils.translation import gettext_lazy as _


class ClassGroup(models.Model):
    """
    A form and its section, e.g. Form 2 section A ("F2-A").
    Reports are generated per class group, and its class teacher
    writes the overall comment on every report in it.
    """
    form = models.PositiveSmallIntegerField(
        help_text="Grade level: 1, 2, 3, etc."
    )
    section = models.CharField(
        max_length=5,
        help_text="A, B, C, etc."
    )

    # Auto-generated class name
    name = models.CharField(
        max_length=20,
        editable=False,
        help_text="Auto-generated: F1-A, F2-B"
    )

    class_teacher = models.ForeignKey(
        'teachers.Teacher',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='supervised_classes',
        help_text="The form tutor or class teacher responsible for this class."
    )

    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['form', 'section']
        verbose_name = "Class Group"
        verbose_name_plural = "Class Groups"
        unique_together = ['form', 'section']

    def __str__(self):
        return self.name

    def save(self, *args, **kwargs):
        self.section = self.section.upper()
        self.name = self.generate_name()
        super().save(*args, **kwargs)

    def generate_name(self):
        return f"F{self.form}-{self.section.upper()}"

    @property
    def level_display(self):
        """Human-readable form name."""
        return f"Form {self.form} {self.section}"


class Subject(models.Model):
    """
    Represents a subject taught at the school.
    Subjects can be core (mandatory) or elective.
    """
    name = models.CharField(
        max_length=100,
        help_text="e.g., Mathematics, English Language, Integrated Science"
    )
    short_name = models.CharField(
        max_length=20,
        blank=True,
        help_text="e.g., MATH, ENG, INT SCI"
    )
    code = models.CharField(
        max_length=20,
        blank=True,
        help_text="Optional subject code"
    )
    is_core = models.BooleanField(
        default=True,
        help_text="Core subjects are mandatory"
    )

    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-is_core', 'name']
        verbose_name = "Subject"
        verbose_name_plural = "Subjects"

    def __str__(self):
        return self.name


class ClassSubject(models.Model):
    """
    Links a ClassGroup to a Subject and assigns a specific Teacher.
    Example: 'Mr. Smith' teaches 'Mathematics' to 'F2-B'.
    """
    class_group = models.ForeignKey(
        ClassGroup,
        on_delete=models.CASCADE,
        related_name='subjects'
    )
    subject = models.ForeignKey(
        Subject,
        on_delete=models.CASCADE,
        related_name='class_allocations'
    )
    teacher = models.ForeignKey(
        'teachers.Teacher',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='subject_assignments'
    )
    is_active = models.BooleanField(default=True)

    class Meta:
        unique_together = ['class_group', 'subject']
        verbose_name = "Subject Allocation"
        verbose_name_plural = "Subject Allocations"

    def __str__(self):
        return f"{self.subject.name} - {self.class_group.name}"


class StudentSubjectEnrollment(models.Model):
    """
    A student taking a class subject in a given term.
    Assessments are recorded against this row.
    """
    student = models.ForeignKey(
        'students.Student',
        on_delete=models.CASCADE,
        related_name='subject_enrollments'
    )
    class_subject = models.ForeignKey(
        ClassSubject,
        on_delete=models.CASCADE,
        related_name='enrollments'
    )
    term = models.ForeignKey(
        'core.Term',
        on_delete=models.CASCADE,
        related_name='subject_enrollments'
    )
    is_active = models.BooleanField(
        default=True,
        help_text=_("Cleared when the student drops the subject")
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        unique_together = ['student', 'class_subject', 'term']
        verbose_name = "Subject Enrollment"
        verbose_name_plural = "Subject Enrollments"

    def __str__(self):
        return f"{self.student} - {self.class_subject} ({self.term})"

    @property
    def subject(self):
        return self.class_subject.subject
