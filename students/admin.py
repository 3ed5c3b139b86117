from django.contrib import admin

from unfold.admin import ModelAdmin, TabularInline

from .models import Enrollment, Student


class EnrollmentInline(TabularInline):
    model = Enrollment
    extra = 0
    fields = ('academic_year', 'class_group', 'status')


@admin.register(Student)
class StudentAdmin(ModelAdmin):
    list_display = ('admission_number', 'full_name', 'gender', 'status')
    list_filter = ('status', 'gender')
    search_fields = ('admission_number', 'first_name', 'last_name', 'other_names')
    inlines = [EnrollmentInline]


@admin.register(Enrollment)
class EnrollmentAdmin(ModelAdmin):
    list_display = ('student', 'academic_year', 'class_group', 'status')
    list_filter = ('academic_year', 'class_group', 'status')
    search_fields = ('student__first_name', 'student__last_name', 'student__admission_number')
    autocomplete_fields = ('student',)
