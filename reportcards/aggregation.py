"""
Turns a subject's assessments for a term into the marks on its SubjectReport.
"""
import logging
from collections import namedtuple

from . import grading
from .exceptions import NoAssessmentsError

logger = logging.getLogger(__name__)


SubjectMarks = namedtuple(
    'SubjectMarks', ['coursework_mark', 'exam_mark', 'final_mark', 'final_grade']
)

EMPTY_MARKS = SubjectMarks(None, None, None, '')

COURSEWORK = 'COURSEWORK'
FINAL_EXAM = 'FINAL_EXAM'


class SubjectReportAggregator:
    """
    Computes coursework, exam and final marks for one subject.

    Coursework is the plain mean of every coursework assessment expressed
    as a percentage. The exam mark is the most recent final exam (by date,
    then by when it was recorded). Comments are never touched.
    """

    def __init__(self, weights=None):
        self.weights = weights

    def aggregate(self, assessments):
        """
        Return SubjectMarks for a list of assessments.
        Raises InvalidMarkError if any assessment has an impossible score.
        """
        if not assessments:
            return EMPTY_MARKS

        coursework = [a for a in assessments if a.assessment_type == COURSEWORK]
        exams = [a for a in assessments if a.assessment_type == FINAL_EXAM]

        coursework_mark = None
        if coursework:
            percentages = [grading.normalize(a.score, a.max_score) for a in coursework]
            coursework_mark = grading.quantize(sum(percentages) / len(percentages))

        exam_mark = None
        if exams:
            latest = max(exams, key=lambda a: (a.date, a.created_at))
            exam_mark = grading.quantize(grading.normalize(latest.score, latest.max_score))

        final = grading.final_mark(coursework_mark, exam_mark, self.weights)
        final_grade = grading.grade(final) if final is not None else ''
        return SubjectMarks(coursework_mark, exam_mark, final, final_grade)

    def apply(self, subject_report, assessments, student_id=None):
        """
        Write freshly computed marks onto subject_report (without saving).

        Returns (changed, warnings): whether any mark field differs from
        what was there before, and a list of advisory NoAssessmentsError.
        """
        warnings = []
        if not assessments:
            warnings.append(NoAssessmentsError(
                f"No assessments recorded for {subject_report.subject.name}",
                student_id=student_id,
                report_id=subject_report.report_id,
                subject_id=subject_report.subject_id,
            ))

        marks = self.aggregate(assessments)
        changed = False
        for field, value in marks._asdict().items():
            if getattr(subject_report, field) != value:
                setattr(subject_report, field, value)
                changed = True
        return changed, warnings
