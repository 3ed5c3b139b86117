from django.contrib import admin

from unfold.admin import ModelAdmin, TabularInline

from .models import Assessment, Report, ReportActivityLog, SubjectReport


@admin.register(Assessment)
class AssessmentAdmin(ModelAdmin):
    list_display = ('student_subject', 'assessment_type', 'name', 'score', 'max_score', 'term', 'date')
    list_filter = ('assessment_type', 'term')
    search_fields = (
        'name',
        'student_subject__student__first_name',
        'student_subject__student__last_name',
        'student_subject__student__admission_number',
    )
    autocomplete_fields = ('student_subject',)
    readonly_fields = ('recorded_by', 'created_at', 'updated_at')

    def save_model(self, request, obj, form, change):
        if not change and obj.recorded_by_id is None:
            obj.recorded_by = request.user
        super().save_model(request, obj, form, change)


class SubjectReportInline(TabularInline):
    model = SubjectReport
    extra = 0
    fields = ('subject', 'coursework_mark', 'exam_mark', 'final_mark', 'final_grade', 'comment', 'comment_by')
    readonly_fields = fields
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False

    def has_change_permission(self, request, obj=None):
        return False


class ReportActivityInline(TabularInline):
    model = ReportActivityLog
    extra = 0
    fields = ('created_at', 'action', 'subject', 'user', 'old_value', 'new_value')
    readonly_fields = fields
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Report)
class ReportAdmin(ModelAdmin):
    """
    Reports are built by the generation workflow, not by hand, and are
    never deleted. Comments and finalization go through
    ReportLifecycleService, so the admin only views them.
    """
    list_display = ('student', 'class_group', 'term', 'status_display', 'finalized', 'generated_at')
    list_filter = ('finalized', 'term', 'class_group')
    search_fields = ('student__first_name', 'student__last_name', 'student__admission_number')
    readonly_fields = (
        'student', 'class_group', 'term', 'overall_comment', 'overall_comment_by', 'overall_commented_at',
        'finalized', 'finalized_at', 'finalized_by', 'generated_at', 'created_at', 'updated_at',
    )
    inlines = [SubjectReportInline, ReportActivityInline]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    def status_display(self, obj):
        return obj.status.label
    status_display.short_description = 'Status'
