from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from django.utils.translation import gettext_lazy as _

from unfold.admin import ModelAdmin, StackedInline
from unfold.forms import AdminPasswordChangeForm, UserChangeForm, UserCreationForm

from teachers.models import Teacher

from .models import Role, User


class TeacherProfileInline(StackedInline):
    """Staff record that ties a login to teaching assignments."""
    model = Teacher
    fk_name = 'user'
    extra = 0
    max_num = 1
    fields = ('staff_id', 'first_name', 'middle_name', 'last_name', 'status')


@admin.register(User)
class UserAdmin(BaseUserAdmin, ModelAdmin):
    form = UserChangeForm
    add_form = UserCreationForm
    change_password_form = AdminPasswordChangeForm

    list_display = ('email', 'first_name', 'last_name', 'roles_display', 'is_active', 'last_login')
    list_filter = ('is_active', 'is_school_admin', 'is_clerk', 'is_teacher', 'is_class_teacher')
    search_fields = ('email', 'first_name', 'last_name')
    ordering = ('email',)
    inlines = [TeacherProfileInline]

    fieldsets = (
        (None, {'fields': ('email', 'password')}),
        (_('Personal info'), {'fields': ('first_name', 'last_name')}),
        (_('Report workflow roles'), {
            'fields': ('is_school_admin', 'is_clerk', 'is_teacher', 'is_class_teacher'),
            'description': _(
                'Administrators and clerks generate and finalize reports. Teachers comment on '
                'subjects they are assigned to; class teachers add the overall comment.'
            ),
        }),
        (_('Site access'), {
            'classes': ('collapse',),
            'fields': ('is_active', 'is_staff', 'is_superuser', 'groups', 'user_permissions'),
        }),
        (_('Important dates'), {'fields': ('last_login', 'date_joined')}),
    )

    add_fieldsets = (
        (None, {
            'classes': ('wide',),
            'fields': ('email', 'password1', 'password2', 'is_school_admin', 'is_clerk',
                       'is_teacher', 'is_class_teacher'),
        }),
    )

    readonly_fields = ('date_joined', 'last_login')

    @admin.display(description=_('Roles'))
    def roles_display(self, obj):
        labels = [role.label for role in Role if role in obj.roles]
        return ', '.join(str(label) for label in labels) or '-'
