from django.contrib import admin

from unfold.admin import ModelAdmin, TabularInline

from .models import AcademicYear, Term


class TermInline(TabularInline):
    model = Term
    extra = 0
    fields = ('name', 'term_number', 'start_date', 'end_date', 'is_current')


@admin.register(AcademicYear)
class AcademicYearAdmin(ModelAdmin):
    list_display = ('name', 'start_date', 'end_date', 'is_current')
    list_filter = ('is_current',)
    search_fields = ('name',)
    inlines = [TermInline]


@admin.register(Term)
class TermAdmin(ModelAdmin):
    list_display = ('name', 'academic_year', 'term_number', 'start_date', 'end_date', 'is_current')
    list_filter = ('academic_year', 'is_current')
    search_fields = ('name', 'academic_year__name')
