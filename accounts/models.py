from django.contrib.auth.models import AbstractUser, BaseUserManager
from django.db import models
from django.utils.translation import gettext_lazy as _


class Role(models.TextChoices):
    """
    The closed set of school roles that take part in the report workflow.
    A user may hold several roles at once (e.g. a subject teacher who is
    also the class teacher of a form).
    """
    ADMIN = 'admin', _('Administrator')
    CLERK = 'clerk', _('Clerk')
    TEACHER = 'teacher', _('Teacher')
    CLASS_TEACHER = 'class_teacher', _('Class Teacher')


class UserManager(BaseUserManager):
    """
    Custom manager to easily create different types of school users.
    """

    def create_user(self, email, password=None, **extra_fields):
        """Base method for creating a generic user."""
        if not email:
            raise ValueError(_('The Email must be set'))
        email = self.normalize_email(email)
        user = self.model(email=email, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_superuser(self, email, password=None, **extra_fields):
        """Create a Superuser (Platform Owner)."""
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)
        extra_fields.setdefault('is_active', True)

        if extra_fields.get('is_staff') is not True:
            raise ValueError(_('Superuser must have is_staff=True.'))
        if extra_fields.get('is_superuser') is not True:
            raise ValueError(_('Superuser must have is_superuser=True.'))

        return self.create_user(email, password, **extra_fields)

    # --- ROLE SPECIFIC HELPERS ---

    def create_school_admin(self, email, password=None, **extra_fields):
        """Create a School Administrator (Principal/Head)."""
        extra_fields.setdefault('is_school_admin', True)
        extra_fields.setdefault('is_staff', False)
        return self.create_user(email, password, **extra_fields)

    def create_clerk(self, email, password=None, **extra_fields):
        """Create an academic office clerk."""
        extra_fields.setdefault('is_clerk', True)
        return self.create_user(email, password, **extra_fields)

    def create_teacher(self, email, password=None, **extra_fields):
        """Create a subject Teacher."""
        extra_fields.setdefault('is_teacher', True)
        return self.create_user(email, password, **extra_fields)

    def create_class_teacher(self, email, password=None, **extra_fields):
        """Create a Teacher who is also a form/class teacher."""
        extra_fields.setdefault('is_teacher', True)
        extra_fields.setdefault('is_class_teacher', True)
        return self.create_user(email, password, **extra_fields)


class User(AbstractUser):
    username = None
    email = models.EmailField(_('email address'), unique=True)

    # Roles / Flags
    is_school_admin = models.BooleanField(default=False)
    is_clerk = models.BooleanField(default=False)
    is_teacher = models.BooleanField(default=False)
    is_class_teacher = models.BooleanField(default=False)

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = []

    objects = UserManager()

    def __str__(self):
        return self.email

    @property
    def roles(self):
        """The set of Role members this user holds."""
        held = set()
        if self.is_superuser or self.is_school_admin:
            held.add(Role.ADMIN)
        if self.is_clerk:
            held.add(Role.CLERK)
        if self.is_teacher:
            held.add(Role.TEACHER)
        if self.is_class_teacher:
            held.add(Role.CLASS_TEACHER)
        return frozenset(held)

