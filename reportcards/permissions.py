"""
Who may do what to a report.

Each Role maps to an explicit set of capabilities. Holding a capability is
necessary but not always sufficient: commenting also depends on the actor's
teaching assignments, which are looked up through a TeachingDirectory.
"""
import enum
from dataclasses import dataclass

from django.core.exceptions import ImproperlyConfigured

from accounts.models import Role

from .state import ReportStatus, derive_status
from .stores import TeachingDirectory


class Capability(enum.Enum):
    GENERATE = 'generate'
    FINALIZE = 'finalize'
    VIEW_ALL = 'view_all'
    COMMENT_SUBJECT = 'comment_subject'
    COMMENT_OVERALL = 'comment_overall'


ROLE_CAPABILITIES = {
    Role.ADMIN: frozenset({Capability.GENERATE, Capability.FINALIZE, Capability.VIEW_ALL}),
    Role.CLERK: frozenset({Capability.GENERATE, Capability.FINALIZE, Capability.VIEW_ALL}),
    Role.TEACHER: frozenset({Capability.COMMENT_SUBJECT}),
    Role.CLASS_TEACHER: frozenset({Capability.COMMENT_OVERALL}),
}

_unmapped = set(Role) - set(ROLE_CAPABILITIES)
if _unmapped:
    raise ImproperlyConfigured(
        f"Roles without report capabilities: {', '.join(sorted(_unmapped))}"
    )


@dataclass(frozen=True)
class Actor:
    """The user performing an operation, with the roles they hold."""
    user_id: int | None
    roles: frozenset = frozenset()

    def __post_init__(self):
        object.__setattr__(self, 'roles', frozenset(Role(role) for role in self.roles))

    @classmethod
    def from_user(cls, user):
        if user is None or not user.is_authenticated:
            return cls(user_id=None, roles=frozenset())
        return cls(user_id=user.pk, roles=user.roles)

    @property
    def capabilities(self):
        granted = set()
        for role in self.roles:
            granted |= ROLE_CAPABILITIES[role]
        return frozenset(granted)

    def has(self, capability):
        return capability in self.capabilities

    @property
    def is_staff(self):
        """Academic office staff: administrators and clerks."""
        return bool({Role.ADMIN, Role.CLERK} & self.roles)


class CommentAuthorizationGuard:
    """
    Answers permission questions about reports. All checks are advisory;
    callers that mutate re-ask them while holding the report's row lock.
    """

    def __init__(self, directory=None):
        self.directory = directory or TeachingDirectory()

    def can_generate(self, actor):
        return actor.has(Capability.GENERATE)

    def can_comment_subject(self, actor, report, subject_id):
        if not actor.has(Capability.COMMENT_SUBJECT):
            return False
        class_group = report.class_group
        return self.directory.is_assigned_teacher(
            actor.user_id, subject_id, class_group.form, class_group.section
        )

    def can_comment_overall(self, actor, report):
        if not actor.has(Capability.COMMENT_OVERALL):
            return False
        return self.directory.is_class_teacher_of(actor.user_id, report.class_group_id)

    def can_finalize(self, actor, report):
        if not actor.has(Capability.FINALIZE):
            return False
        return derive_status(report) == ReportStatus.READY_TO_FINALIZE

    def can_view(self, actor, report):
        return self.can_view_class(actor, report.class_group_id)

    def can_view_class(self, actor, class_group_id):
        if actor.has(Capability.VIEW_ALL):
            return True
        if actor.has(Capability.COMMENT_SUBJECT) and self.directory.teaches_in_class(
            actor.user_id, class_group_id
        ):
            return True
        if actor.has(Capability.COMMENT_OVERALL) and self.directory.is_class_teacher_of(
            actor.user_id, class_group_id
        ):
            return True
        return False
