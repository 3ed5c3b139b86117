"""
Configuration settings for the reportcards app.

These values can be overridden in Django settings by prefixing with REPORTCARDS_.
For example, to weight coursework and exams equally:
    REPORTCARDS_COURSEWORK_WEIGHT = 50
    REPORTCARDS_EXAM_WEIGHT = 50

All configuration values are lazily loaded to avoid Django setup issues.
"""


def _get_setting(name, default):
    """Get a reportcards setting from Django settings or use default."""
    from django.conf import settings
    return getattr(settings, f'REPORTCARDS_{name}', default)


_DEFAULTS = {
    # Final mark blend (percent weights, need not sum to 100)
    'COURSEWORK_WEIGHT': 30,
    'EXAM_WEIGHT': 70,

    # Precision of stored marks
    'MARK_DECIMAL_PLACES': 2,

    # Comment input limits
    'COMMENT_MAX_LENGTH': 1000,

    # Number of activity entries returned with a report
    'ACTIVITY_LOG_DISPLAY_LIMIT': 50,
}


class _ConfigProxy:
    """
    Lazy configuration proxy that loads settings only when accessed.
    This avoids Django setup issues during module import.
    """

    def __getattr__(self, name):
        if name in _DEFAULTS:
            return _get_setting(name, _DEFAULTS[name])
        raise AttributeError(f"Unknown config setting: {name}")


# Module-level proxy object for attribute access
_config = _ConfigProxy()


def __getattr__(name):
    """Enable module-level attribute access via the config proxy."""
    return getattr(_config, name)
