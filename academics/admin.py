from django.contrib import admin

from unfold.admin import ModelAdmin, TabularInline

from .models import ClassGroup, ClassSubject, StudentSubjectEnrollment, Subject


class ClassSubjectInline(TabularInline):
    model = ClassSubject
    extra = 0
    fields = ('subject', 'teacher', 'is_active')
    autocomplete_fields = ('subject', 'teacher')


@admin.register(ClassGroup)
class ClassGroupAdmin(ModelAdmin):
    list_display = ('name', 'form', 'section', 'class_teacher', 'is_active')
    list_filter = ('form', 'is_active')
    search_fields = ('name', 'section')
    autocomplete_fields = ('class_teacher',)
    inlines = [ClassSubjectInline]


@admin.register(Subject)
class SubjectAdmin(ModelAdmin):
    list_display = ('name', 'short_name', 'code', 'is_core', 'is_active')
    list_filter = ('is_core', 'is_active')
    search_fields = ('name', 'short_name', 'code')


@admin.register(ClassSubject)
class ClassSubjectAdmin(ModelAdmin):
    list_display = ('subject', 'class_group', 'teacher', 'is_active')
    list_filter = ('class_group', 'is_active')
    search_fields = ('subject__name', 'class_group__name', 'teacher__last_name')
    autocomplete_fields = ('subject', 'teacher', 'class_group')


@admin.register(StudentSubjectEnrollment)
class StudentSubjectEnrollmentAdmin(ModelAdmin):
    list_display = ('student', 'class_subject', 'term', 'is_active')
    list_filter = ('term', 'is_active')
    search_fields = (
        'student__first_name', 'student__last_name', 'student__admission_number',
        'class_subject__subject__name',
    )
    autocomplete_fields = ('student', 'class_subject')
