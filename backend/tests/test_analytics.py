"""Test cases for grade analytics."""

from datetime import date

import pytest

from gradebook.grading.analytics import difficulty_label
from gradebook.grading.exceptions import NotFoundError
from gradebook.grading.primitives import LETTER_GRADES


def graded_essays(grading, assignment, clock, grades, start_student=1):
    """Submit and grade one essay per grade; None leaves it ungraded."""
    submissions = []
    for offset, grade in enumerate(grades):
        draft = grading.save_draft(assignment.id, start_student + offset, {"text": "essay"})
        submission = grading.submit_final(draft.id)
        if grade is not None:
            grading.grade_submission(submission.id, grade)
        submissions.append(submission)
    return submissions


class TestDifficultyLabel:
    """Test cases for question difficulty buckets."""

    @pytest.mark.parametrize("rate,answered,expected", [
        (100, 4, "Easy"), (80, 5, "Easy"), (79.99, 5, "Medium"), (60, 5, "Medium"),
        (59.99, 5, "Hard"), (40, 5, "Hard"), (39.99, 5, "Very Hard"), (0, 5, "Very Hard"),
        (0, 0, "Unknown"),
    ])
    def test_buckets(self, rate, answered, expected):
        assert difficulty_label(rate, answered) == expected


class TestAssignmentAnalytics:
    """Test cases for per-assignment analytics."""

    def test_statistics_and_metrics(self, grading, sample_assignment, clock):
        graded_essays(grading, sample_assignment, clock, [95, 85, 55, 75, None])

        snapshot = grading.get_assignment_analytics(sample_assignment.id)

        stats = snapshot.statistics
        assert stats.total_submissions == 5
        assert stats.graded_submissions == 4
        assert stats.average_grade == 77.5
        assert stats.highest_grade == 95
        assert stats.lowest_grade == 55
        assert stats.median_grade == 80

        performance = snapshot.performance
        assert performance.completion_rate == 80
        assert performance.average_score == 77.5
        assert performance.average_percentage == 77.5
        assert performance.standard_deviation == 14.79
        assert performance.passing_rate == 75

    def test_distribution_lists_every_band(self, grading, sample_assignment, clock):
        graded_essays(grading, sample_assignment, clock, [95, 90, 89.99, 59.99])

        distribution = grading.get_assignment_analytics(sample_assignment.id).grade_distribution

        assert list(distribution) == list(LETTER_GRADES)
        assert distribution["A+"] == 1
        assert distribution["A"] == 1
        assert distribution["A-"] == 1
        assert distribution["D-"] == 1
        assert distribution["F"] == 0

    def test_percentages_use_max_score(self, grading, assignment_factory, clock):
        assignment = assignment_factory(max_score=50)
        graded_essays(grading, assignment, clock, [45, 25])

        snapshot = grading.get_assignment_analytics(assignment.id)

        assert snapshot.performance.average_percentage == 70
        assert snapshot.grade_distribution["A"] == 1
        assert snapshot.grade_distribution["F"] == 1
        assert snapshot.performance.passing_rate == 50

    def test_empty_assignment(self, grading, sample_assignment):
        snapshot = grading.get_assignment_analytics(sample_assignment.id)

        assert snapshot.statistics.total_submissions == 0
        assert snapshot.statistics.average_grade is None
        assert snapshot.statistics.median_grade is None
        assert snapshot.performance.completion_rate == 0
        assert snapshot.timeline == []
        assert snapshot.question_analytics == []

    def test_timeline_groups_by_day(self, grading, sample_assignment, clock):
        drafts = [grading.save_draft(sample_assignment.id, s, {"text": "essay"}) for s in (1, 2, 3)]
        submissions = [grading.submit_final(d.id) for d in drafts]
        clock.set(2025, 1, 12, 9, 0)
        grading.grade_submission(submissions[0].id, 80)
        grading.grade_submission(submissions[1].id, 70)
        clock.set(2025, 1, 14, 23, 30)
        grading.grade_submission(submissions[2].id, 60)

        timeline = grading.get_assignment_analytics(sample_assignment.id).timeline

        assert [(entry.day, entry.graded_count) for entry in timeline] == [
            (date(2025, 1, 12), 2),
            (date(2025, 1, 14), 1),
        ]

    def test_late_statistics(self, grading, sample_assignment, clock):
        on_time = graded_essays(grading, sample_assignment, clock, [90])
        clock.set(2025, 1, 12, 12, 0)
        late = graded_essays(grading, sample_assignment, clock, [90, 80], start_student=10)
        grading.waive_late_penalty(late[0].id, waived_by=100, reason="Excused")

        late_stats = grading.get_assignment_analytics(sample_assignment.id).late_statistics

        assert on_time[0].late_record is None
        assert late_stats.late_submissions == 2
        assert late_stats.waived_penalties == 1
        assert late_stats.average_penalty_percentage == 20

    def test_recomputation_is_identical(self, grading, sample_quiz, sample_assignment, clock):
        """Test that two snapshots over the same rows are identical."""
        graded_essays(grading, sample_assignment, clock, [91.25, 66.5, 73])
        for student_id, answers in ((1, {0: "4", 1: True}), (2, {0: "3", 2: "2x"})):
            draft = grading.save_draft(sample_quiz.id, student_id, {"quiz_answers": answers})
            grading.submit_final(draft.id)

        for assignment_id in (sample_assignment.id, sample_quiz.id):
            first = grading.get_assignment_analytics(assignment_id)
            second = grading.get_assignment_analytics(assignment_id)
            assert first.model_dump_json() == second.model_dump_json()

    def test_unknown_assignment(self, grading):
        with pytest.raises(NotFoundError):
            grading.get_assignment_analytics(404)


class TestQuestionAnalytics:
    """Test cases for per-question quiz analytics."""

    def test_success_rates(self, grading, sample_quiz):
        answer_sets = [
            {0: "4", 1: True, 2: "2x"},
            {0: "4", 1: False, 2: "3x"},
            {0: "5", 1: True},
            {0: "4", 1: True, 3: "  "},
        ]
        for student_id, answers in enumerate(answer_sets, start=1):
            draft = grading.save_draft(sample_quiz.id, student_id, {"quiz_answers": answers})
            grading.submit_final(draft.id)

        questions = grading.get_assignment_analytics(sample_quiz.id).question_analytics

        assert [q.question_index for q in questions] == [0, 1, 2, 3, 4]
        by_index = {q.question_index: q for q in questions}
        assert (by_index[0].correct_count, by_index[0].total_answered) == (3, 4)
        assert by_index[0].success_rate == 75
        assert by_index[0].difficulty == "Medium"
        assert by_index[1].difficulty == "Medium"
        assert by_index[2].success_rate == 50
        assert by_index[2].difficulty == "Hard"
        assert by_index[3].total_answered == 0
        assert by_index[3].difficulty == "Unknown"
        assert by_index[0].question == "2 + 2 = ?"

    def test_essay_assignment_has_no_question_analytics(self, grading, sample_assignment, clock):
        graded_essays(grading, sample_assignment, clock, [80])
        assert grading.get_assignment_analytics(sample_assignment.id).question_analytics == []


class TestCourseAnalytics:
    """Test cases for course-wide analytics and course grades."""

    def test_course_analytics(self, grading, assignment_factory, clock):
        essay = assignment_factory(title="Essay")
        lab = assignment_factory(title="Lab", max_score=50)
        assignment_factory(title="Other course", course_id=2)
        graded_essays(grading, essay, clock, [90, 70])
        graded_essays(grading, lab, clock, [40, None])

        course = grading.get_course_analytics(1)

        assert course.assignment_count == 2
        assert course.total_submissions == 4
        assert course.graded_submissions == 3
        assert course.average_percentage == 80
        assert [a.title for a in course.assignments] == ["Essay", "Lab"]
        assert course.assignments[1].average_percentage == 80
        assert sum(course.grade_distribution.values()) == 3

    def test_course_grade(self, grading, assignment_factory, clock):
        essay = assignment_factory(title="Essay")
        lab = assignment_factory(title="Lab", max_score=50)
        assignment_factory(title="Ungraded")
        graded_essays(grading, essay, clock, [90])
        graded_essays(grading, lab, clock, [30])

        course_grade = grading.calculate_course_grade(1, 1)

        assert course_grade.earned_points == 120
        assert course_grade.possible_points == 150
        assert course_grade.percentage == 80
        assert course_grade.letter_grade == "B"
        assert course_grade.graded_assignments == 2
        assert course_grade.total_assignments == 3

    def test_course_grade_without_grades(self, grading):
        course_grade = grading.calculate_course_grade(1, 99)
        assert course_grade.percentage == 0
        assert course_grade.letter_grade == "N/A"
