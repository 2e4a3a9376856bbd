"""تطبیق نام دانش‌آموز با فهرست معلم در چند لایهٔ مرتب.

هر لایه یک تابع خالص ``(query, candidates) -> StudentMatch | None`` است و
لایه‌ها به‌ترتیب اجرا می‌شوند؛ اولین لایه‌ای که نتیجه بدهد برنده است:

1. ``exact``: برابری کامل نام، بدون حساسیت به حروف بزرگ/کوچک.
2. ``normalized``: برابری پس از یکسان‌سازی فاصله‌ها و املای فارسی.
3. ``token_subset``: هر بخش نام جست‌وجو زیررشتهٔ یکی از بخش‌های نام نامزد باشد.
4. ``overlap``: بیشترین نسبت بخش‌های مشترک، به شرط ``>= 0.7``.

اگر در یک لایه چند نامزد هم‌ارز باشند، نامزد با کوچک‌ترین شناسهٔ ذخیره‌شده
(مقایسهٔ رشته‌ای) انتخاب می‌شود تا نتیجه دترمینیستیک بماند.

فهرست نامزدها را همیشه فراخواننده از فهرست همان معلم می‌سازد؛ این ماژول
هیچ منبع دیگری را نمی‌بیند.

مثال::

    >>> roster = [StudentCandidate("2", "علی رضایی‌نژاد"), StudentCandidate("1", "علی رضایی")]
    >>> find_student("علی رضایی", roster).candidate.id
    '1'
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Callable, Iterable, Sequence

from daftar.core.common.normalization import cell_text, fold_name
from daftar.core.models import StudentCandidate

__all__ = [
    "MatchTier",
    "StudentMatch",
    "OVERLAP_THRESHOLD",
    "MATCHERS",
    "exact_match",
    "normalized_match",
    "token_subset_match",
    "overlap_score_match",
    "find_student",
    "unique_candidates",
]

OVERLAP_THRESHOLD = 0.7


class MatchTier(StrEnum):
    EXACT = "exact"
    NORMALIZED = "normalized"
    TOKEN_SUBSET = "token_subset"
    OVERLAP = "overlap"


@dataclass(frozen=True)
class StudentMatch:
    candidate: StudentCandidate
    tier: MatchTier
    score: float = 1.0


Matcher = Callable[[str, Sequence[StudentCandidate]], "StudentMatch | None"]


def _pick_lowest_id(
    matches: Iterable[StudentCandidate], tier: MatchTier, score: float = 1.0
) -> StudentMatch | None:
    ordered = sorted(matches, key=lambda cand: str(cand.id))
    if not ordered:
        return None
    return StudentMatch(candidate=ordered[0], tier=tier, score=score)


def exact_match(query: str, candidates: Sequence[StudentCandidate]) -> StudentMatch | None:
    target = cell_text(query).casefold()
    if not target:
        return None
    hits = [cand for cand in candidates if cell_text(cand.name).casefold() == target]
    return _pick_lowest_id(hits, MatchTier.EXACT)


def normalized_match(query: str, candidates: Sequence[StudentCandidate]) -> StudentMatch | None:
    target = fold_name(query)
    if not target:
        return None
    hits = [cand for cand in candidates if fold_name(cand.name) == target]
    return _pick_lowest_id(hits, MatchTier.NORMALIZED)


def token_subset_match(query: str, candidates: Sequence[StudentCandidate]) -> StudentMatch | None:
    parts = fold_name(query).split()
    if not parts:
        return None
    hits = []
    for cand in candidates:
        name_parts = fold_name(cand.name).split()
        if all(any(part in np for np in name_parts) for part in parts):
            hits.append(cand)
    return _pick_lowest_id(hits, MatchTier.TOKEN_SUBSET)


def overlap_score_match(query: str, candidates: Sequence[StudentCandidate]) -> StudentMatch | None:
    parts = fold_name(query).split()
    if not parts:
        return None
    best_score = 0.0
    best: list[StudentCandidate] = []
    for cand in candidates:
        folded = fold_name(cand.name)
        if not folded:
            continue
        score = sum(1 for part in parts if part in folded) / len(parts)
        if score < OVERLAP_THRESHOLD:
            continue
        if score > best_score:
            best_score, best = score, [cand]
        elif score == best_score:
            best.append(cand)
    return _pick_lowest_id(best, MatchTier.OVERLAP, score=best_score)


MATCHERS: tuple[Matcher, ...] = (
    exact_match,
    normalized_match,
    token_subset_match,
    overlap_score_match,
)


def unique_candidates(candidates: Iterable[StudentCandidate]) -> list[StudentCandidate]:
    """حذف تکرار نامزدها بر اساس شناسه با حفظ اولین رخداد."""

    seen: set[str] = set()
    unique: list[StudentCandidate] = []
    for cand in candidates:
        if cand.id in seen:
            continue
        seen.add(cand.id)
        unique.append(cand)
    return unique


def find_student(
    name: object,
    candidates: Iterable[StudentCandidate],
    *,
    matchers: Sequence[Matcher] = MATCHERS,
) -> StudentMatch | None:
    """یافتن بهترین دانش‌آموز برای نام واردشده؛ ``None`` یعنی «یافت نشد»."""

    query = cell_text(name)
    pool = unique_candidates(candidates)
    if not query or not pool:
        return None
    for matcher in matchers:
        match = matcher(query, pool)
        if match is not None:
            return match
    return None
