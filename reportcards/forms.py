from django import forms
from django.core.validators import MaxLengthValidator

from . import config


class CommentForm(forms.Form):
    """Overall (class teacher) comment."""
    comment = forms.CharField(strip=True)

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        # Limit is read at request time so settings overrides apply
        limit = int(config.COMMENT_MAX_LENGTH)
        self.fields['comment'].max_length = limit
        self.fields['comment'].validators.append(MaxLengthValidator(limit))


class SubjectCommentForm(CommentForm):
    """Subject teacher comment for one subject on a report."""
    subject_id = forms.IntegerField(min_value=1)
