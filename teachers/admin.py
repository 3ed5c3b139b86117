from django.contrib import admin

from unfold.admin import ModelAdmin

from .models import Teacher


@admin.register(Teacher)
class TeacherAdmin(ModelAdmin):
    list_display = ('staff_id', 'full_name', 'user', 'status')
    list_filter = ('status',)
    search_fields = ('staff_id', 'first_name', 'last_name', 'user__email')
    autocomplete_fields = ('user',)
