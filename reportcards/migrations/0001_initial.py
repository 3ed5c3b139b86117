import uuid
from decimal import Decimal

import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('academics', '0001_initial'),
        ('core', '0001_initial'),
        ('students', '0002_enrollment'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Assessment',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('assessment_type', models.CharField(choices=[('COURSEWORK', 'Coursework'), ('FINAL_EXAM', 'Final Exam')], default='COURSEWORK', max_length=12)),
                ('name', models.CharField(blank=True, help_text='e.g., Quiz 1, Mid-term Test, End of Term Exam', max_length=100)),
                ('score', models.DecimalField(decimal_places=2, help_text='Points earned', max_digits=6, validators=[django.core.validators.MinValueValidator(Decimal('0'))])),
                ('max_score', models.DecimalField(decimal_places=2, help_text='Maximum points available', max_digits=6, validators=[django.core.validators.MinValueValidator(Decimal('0.01'))])),
                ('date', models.DateField()),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('recorded_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='recorded_assessments', to=settings.AUTH_USER_MODEL)),
                ('student_subject', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='assessments', to='academics.studentsubjectenrollment')),
                ('term', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='assessments', to='core.term')),
            ],
            options={
                'verbose_name': 'Assessment',
                'verbose_name_plural': 'Assessments',
                'db_table': 'assessment',
                'ordering': ['term', 'date', 'created_at'],
                'indexes': [models.Index(fields=['student_subject', 'term'], name='assessment_subject_term_idx')],
            },
        ),
        migrations.CreateModel(
            name='Report',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('overall_comment', models.TextField(blank=True)),
                ('overall_commented_at', models.DateTimeField(blank=True, null=True)),
                ('finalized', models.BooleanField(default=False)),
                ('finalized_at', models.DateTimeField(blank=True, null=True)),
                ('generated_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('class_group', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='reports', to='academics.classgroup')),
                ('finalized_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='finalized_reports', to=settings.AUTH_USER_MODEL)),
                ('overall_comment_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='overall_comments', to=settings.AUTH_USER_MODEL)),
                ('student', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='reports', to='students.student')),
                ('term', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='reports', to='core.term')),
            ],
            options={
                'verbose_name': 'Report',
                'verbose_name_plural': 'Reports',
                'db_table': 'report',
                'ordering': ['term', 'class_group', 'student__last_name', 'student__first_name'],
                'indexes': [models.Index(fields=['class_group', 'term'], name='report_class_term_idx')],
                'constraints': [models.UniqueConstraint(fields=('student', 'term'), name='unique_report_per_student_term')],
            },
        ),
        migrations.CreateModel(
            name='SubjectReport',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('coursework_mark', models.DecimalField(blank=True, decimal_places=2, help_text='Average coursework percentage', max_digits=5, null=True, validators=[django.core.validators.MinValueValidator(0), django.core.validators.MaxValueValidator(100)])),
                ('exam_mark', models.DecimalField(blank=True, decimal_places=2, help_text='Final exam percentage', max_digits=5, null=True, validators=[django.core.validators.MinValueValidator(0), django.core.validators.MaxValueValidator(100)])),
                ('final_mark', models.DecimalField(blank=True, decimal_places=2, help_text='Weighted blend of coursework and exam', max_digits=5, null=True)),
                ('final_grade', models.CharField(blank=True, choices=[('A', 'A'), ('B', 'B'), ('C', 'C'), ('D', 'D'), ('E', 'E'), ('U', 'U')], max_length=1)),
                ('comment', models.TextField(blank=True)),
                ('commented_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('comment_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='subject_comments', to=settings.AUTH_USER_MODEL)),
                ('report', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='subject_reports', to='reportcards.report')),
                ('subject', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='subject_reports', to='academics.subject')),
            ],
            options={
                'verbose_name': 'Subject Report',
                'verbose_name_plural': 'Subject Reports',
                'db_table': 'subject_report',
                'ordering': ['report', '-subject__is_core', 'subject__name'],
                'constraints': [models.UniqueConstraint(fields=('report', 'subject'), name='unique_subject_per_report')],
            },
        ),
        migrations.CreateModel(
            name='ReportActivityLog',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('action', models.CharField(choices=[('GENERATED', 'Generated'), ('REGENERATED', 'Regenerated'), ('SUBJECT_COMMENT', 'Subject comment'), ('OVERALL_COMMENT', 'Overall comment'), ('FINALIZED', 'Finalized')], max_length=20)),
                ('old_value', models.TextField(blank=True)),
                ('new_value', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('report', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='activity', to='reportcards.report')),
                ('subject', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to='academics.subject')),
                ('user', models.ForeignKey(null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='report_activity', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Report Activity',
                'verbose_name_plural': 'Report Activity',
                'db_table': 'report_activity_log',
                'ordering': ['-created_at'],
                'indexes': [models.Index(fields=['report', '-created_at'], name='activity_report_created_idx')],
            },
        ),
    ]
