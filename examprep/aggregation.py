"""
Leaderboard and statistics projections over ExamResult records.
Everything here is re-derivable from the result set and independent of input order.
"""
import math
from collections import defaultdict
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from examprep.models import (
    CategoryStats,
    Exam,
    ExamResult,
    LeaderboardEntry,
    UserProfile,
    STATUS_CORRECT,
    STATUS_INCORRECT,
    STATUS_UNANSWERED,
)


def build_leaderboard(
    results: Iterable[ExamResult],
    profiles: Optional[Mapping[str, UserProfile]] = None,
    limit: Optional[int] = None,
) -> List[LeaderboardEntry]:
    """
    Rank users by the sum of their scores across all results.

    Ordering: total points descending, then fewer exams taken first,
    then user id ascending so equal totals always rank the same way.

    Args:
        results: ExamResult records (any order)
        profiles: Optional {user_id: UserProfile} for display name and avatar
        limit: Keep only the top N entries

    Returns:
        Ranked LeaderboardEntry list (rank starts at 1)
    """
    profiles = profiles or {}
    scores_by_user: Dict[str, List[float]] = defaultdict(list)
    for result in results:
        scores_by_user[result.user_id].append(result.score)

    # fsum is exactly rounded, so the total does not depend on input order
    totals = [(user_id, len(scores), math.fsum(scores)) for user_id, scores in scores_by_user.items()]
    totals.sort(key=lambda t: (-t[2], t[1], t[0]))
    if limit is not None:
        totals = totals[:limit]

    entries = []
    for rank, (user_id, exams_taken, points) in enumerate(totals, start=1):
        profile = profiles.get(user_id)
        entries.append(
            LeaderboardEntry(
                user_id=user_id,
                name=profile.name if profile else user_id,
                avatar_url=profile.photo_url if profile else None,
                exams_taken=exams_taken,
                total_points=points,
                rank=rank,
            )
        )
    return entries


def category_stats(results: Iterable[ExamResult], category: str) -> CategoryStats:
    """Average and best score for one exam category. Empty categories report has_data=False."""
    matching = [r for r in results if r.exam_category == category]
    if not matching:
        return CategoryStats(
            category=category,
            result_count=0,
            average_score=0.0,
            highest_score=0.0,
            highest_score_exam_name="N/A",
            has_data=False,
        )
    average = math.fsum(r.score for r in matching) / len(matching)
    # Ties on score go to the alphabetically first exam, then the lowest result id
    best = min(matching, key=lambda r: (-r.score, r.exam_name, r.id or ""))
    return CategoryStats(
        category=category,
        result_count=len(matching),
        average_score=round(average, 2),
        highest_score=round(best.score, 2),
        highest_score_exam_name=best.exam_name,
        has_data=True,
    )


def user_summary(results: Iterable[ExamResult]) -> Dict:
    """Headline numbers for the analytics page."""
    results = list(results)
    if not results:
        return {
            "total_exams": 0,
            "avg_score": 0.0,
            "avg_accuracy": 0.0,
            "total_time": 0,
            "total_correct": 0,
            "total_incorrect": 0,
        }
    n = len(results)
    return {
        "total_exams": n,
        "avg_score": round(math.fsum(r.score for r in results) / n, 2),
        "avg_accuracy": round(math.fsum(r.accuracy for r in results) / n, 2),
        "total_time": sum(r.time_taken for r in results),
        "total_correct": sum(r.correct_answers for r in results),
        "total_incorrect": sum(r.incorrect_answers for r in results),
    }


def subject_performance(results: Iterable[ExamResult]) -> List[Dict]:
    """
    Per-subject correct/incorrect/unanswered counts over every graded item.
    Accuracy is taken over attempted items only. Sorted by subject name.
    """
    stats: Dict[str, Dict[str, int]] = defaultdict(lambda: {"correct": 0, "incorrect": 0, "unanswered": 0, "total": 0})
    for result in results:
        for outcome in result.question_outcomes:
            row = stats[outcome.subject or "General"]
            row["total"] += 1
            if outcome.status == STATUS_CORRECT:
                row["correct"] += 1
            elif outcome.status == STATUS_INCORRECT:
                row["incorrect"] += 1
            elif outcome.status == STATUS_UNANSWERED:
                row["unanswered"] += 1

    rows = []
    for subject in sorted(stats):
        counts = stats[subject]
        attempted = counts["correct"] + counts["incorrect"]
        rows.append({
            "subject": subject,
            **counts,
            "accuracy": round(counts["correct"] / attempted * 100, 2) if attempted else 0.0,
        })
    return rows


def topic_strengths_weaknesses(result: ExamResult) -> Tuple[List[str], List[str]]:
    """Topics answered correctly (strengths) and incorrectly (weaknesses); a topic can be both."""
    strengths, weaknesses = set(), set()
    for outcome in result.question_outcomes:
        if not outcome.topic:
            continue
        if outcome.status == STATUS_CORRECT:
            strengths.add(outcome.topic)
        elif outcome.status == STATUS_INCORRECT:
            weaknesses.add(outcome.topic)
    return sorted(strengths), sorted(weaknesses)


def exam_count_by_category(exams: Iterable[Exam]) -> Dict[str, int]:
    """Number of published exams per category."""
    counts: Dict[str, int] = defaultdict(int)
    for exam in exams:
        if exam.is_published:
            counts[exam.category] += 1
    return dict(sorted(counts.items()))
