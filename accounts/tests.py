from django.test import TestCase
from django.contrib.auth import get_user_model

from accounts.models import Role

User = get_user_model()


class UserManagerTests(TestCase):
    """Tests for the custom UserManager."""

    def test_create_user(self):
        """Test creating a regular user with email."""
        user = User.objects.create_user(
            email='test@example.com',
            password='testpass123'
        )
        self.assertEqual(user.email, 'test@example.com')
        self.assertTrue(user.check_password('testpass123'))
        self.assertFalse(user.is_staff)
        self.assertFalse(user.is_superuser)
        self.assertTrue(user.is_active)

    def test_create_user_without_email_raises_error(self):
        """Test that creating a user without email raises ValueError."""
        with self.assertRaises(ValueError):
            User.objects.create_user(email='', password='testpass123')

    def test_create_user_normalizes_email(self):
        """Test that email is normalized (lowercase domain)."""
        user = User.objects.create_user(
            email='test@EXAMPLE.COM',
            password='testpass123'
        )
        self.assertEqual(user.email, 'test@example.com')

    def test_create_superuser_without_is_staff_raises_error(self):
        """Test that superuser must have is_staff=True."""
        with self.assertRaises(ValueError):
            User.objects.create_superuser(
                email='admin@example.com',
                password='adminpass123',
                is_staff=False
            )

    def test_create_school_admin(self):
        user = User.objects.create_school_admin(
            email='principal@school.com',
            password='schoolpass123'
        )
        self.assertTrue(user.is_school_admin)
        self.assertFalse(user.is_staff)
        self.assertFalse(user.is_teacher)

    def test_create_clerk(self):
        user = User.objects.create_clerk(email='clerk@school.com', password='pass123')
        self.assertTrue(user.is_clerk)
        self.assertFalse(user.is_school_admin)

    def test_create_class_teacher_is_also_teacher(self):
        user = User.objects.create_class_teacher(email='form@school.com', password='pass123')
        self.assertTrue(user.is_teacher)
        self.assertTrue(user.is_class_teacher)


class UserRoleTests(TestCase):
    """Tests for the role set derived from the user flags."""

    def test_plain_user_has_no_roles(self):
        user = User.objects.create_user(email='user@example.com', password='pass123')
        self.assertEqual(user.roles, frozenset())

    def test_superuser_counts_as_admin(self):
        user = User.objects.create_superuser(email='root@example.com', password='pass123')
        self.assertEqual(user.roles, frozenset({Role.ADMIN}))

    def test_class_teacher_roles(self):
        user = User.objects.create_class_teacher(email='form@school.com', password='pass123')
        self.assertEqual(user.roles, frozenset({Role.TEACHER, Role.CLASS_TEACHER}))

    def test_clerk_roles(self):
        user = User.objects.create_clerk(email='clerk@school.com', password='pass123')
        self.assertEqual(user.roles, frozenset({Role.CLERK}))

    def test_user_str_returns_email(self):
        user = User.objects.create_user(email='test@example.com', password='testpass123')
        self.assertEqual(str(user), 'test@example.com')
