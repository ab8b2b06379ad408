"""
Skill matching and scoring for job applications.

A candidate's learning record (enrolled roadmaps, language learning, badges,
study time) is reduced to a CandidateProfile and scored against a job's
requirements in three weighted categories: skills, experience level and
certifications. Scoring is pure and never raises on missing optional data.
"""
import math
import re
from collections import OrderedDict
from typing import Dict, List, Optional

from skillforge.models.models import (
    CandidateProfile, CertificationsBreakdown, ExperienceBreakdown, MatchBreakdown,
    MatchResult, RankedCandidate, Recommendation, ScoringWeights, SkillsBreakdown
)
from skillforge.models.schemas import JobPostingModel, JobRequirements, UserModel
from skillforge.services.db import jobs_coll, users_coll
from skillforge.utils.exceptions import ExceptionContext, ResourceNotFoundError
from skillforge.utils.logging_config import PerformanceMonitor, get_logger, log_function_call

logger = get_logger(__name__)

DEFAULT_WEIGHTS = ScoringWeights()

# Table order is lookup priority when parsing a job's experience text.
# entry and junior share a level.
EXPERIENCE_LEVELS = OrderedDict([
    ("beginner", 0),
    ("entry", 1),
    ("junior", 1),
    ("intermediate", 2),
    ("mid", 2),
    ("senior", 3),
    ("advanced", 3),
    ("expert", 4),
    ("lead", 4),
])
DEFAULT_REQUIRED_LEVEL = 1

ROLE_SPLIT_RE = re.compile(r"[,/\s]+")


def round_half_up(value: float) -> int:
    """Round .5 away from zero for non-negative scores (Python's round() is banker's)."""
    return int(math.floor(value + 0.5))


def _norm(value: Optional[str]) -> str:
    return (value or "").strip().lower()


def extract_user_skills(user: UserModel) -> List[str]:
    """Collect lower-cased skill tokens from everything the user has learned."""
    skills = set()

    for enrollment in user.enrolled_roadmaps:
        if not enrollment.roadmap:
            continue
        if enrollment.roadmap.role:
            for token in ROLE_SPLIT_RE.split(enrollment.roadmap.role):
                if token.strip():
                    skills.add(_norm(token))
        for completed in enrollment.completed_topics:
            if completed.topic and _norm(completed.topic.title):
                skills.add(_norm(completed.topic.title))

    for lang in user.language_learning:
        if lang.language and _norm(lang.language.name):
            skills.add(_norm(lang.language.name))
        for completed in lang.completed_topics:
            if completed.topic and _norm(completed.topic.title):
                skills.add(_norm(completed.topic.title))

    for earned in user.badges:
        if earned.badge and _norm(earned.badge.name):
            skills.add(_norm(earned.badge.name))

    return sorted(skills)


def build_candidate_profile(user: UserModel) -> CandidateProfile:
    total_minutes = sum((entry.minutes or 0) for entry in user.study_time)
    completed_topics = sum(len(e.completed_topics) for e in user.enrolled_roadmaps)
    certifications = {
        _norm(earned.badge.name)
        for earned in user.badges
        if earned.badge and _norm(earned.badge.name)
    }
    return CandidateProfile(
        skills=set(extract_user_skills(user)),
        skill_level=_norm(user.preferences.skill_level) or "beginner",
        study_hours=total_minutes / 60,
        completed_topic_count=completed_topics,
        certifications=certifications,
    )


def _contains_either_way(a: str, b: str) -> bool:
    return a == b or a in b or b in a


def calculate_skills_score(candidate_skills, required_skills: List[str]) -> Dict:
    if not required_skills:
        return {"percentage": 100, "matched": [], "missing": [], "total": 0}

    matched, missing = [], []
    for required in required_skills:
        normalized = _norm(required)
        if any(_contains_either_way(_norm(skill), normalized) for skill in candidate_skills):
            matched.append(required)
        else:
            missing.append(required)

    return {
        "percentage": round_half_up(len(matched) / len(required_skills) * 100),
        "matched": matched,
        "missing": missing,
        "total": len(required_skills),
    }


def required_experience_level(descriptor: Optional[str]) -> int:
    text = _norm(descriptor)
    for keyword, level in EXPERIENCE_LEVELS.items():
        if keyword in text:
            return level
    return DEFAULT_REQUIRED_LEVEL


def effective_experience_level(profile: CandidateProfile) -> int:
    """Stated level, upgraded one step by heavy platform usage."""
    level = profile.skill_level
    if level == "beginner" and (profile.study_hours > 100 or profile.completed_topic_count > 20):
        return 1
    if level == "intermediate" and (profile.study_hours > 300 or profile.completed_topic_count > 50):
        return 2
    return EXPERIENCE_LEVELS.get(level, 0)


def calculate_experience_score(profile: CandidateProfile, requirements: JobRequirements) -> Dict:
    effective = effective_experience_level(profile)
    required = required_experience_level(requirements.experience)

    gap = required - effective
    if gap <= 0:
        percentage = 100
    elif gap == 1:
        percentage = 70
    elif gap == 2:
        percentage = 40
    else:
        percentage = 20

    return {
        "percentage": percentage,
        "user_level": profile.skill_level,
        "effective_level": effective,
        "required_level": required,
        "study_hours": round_half_up(profile.study_hours),
        "completed_topics": profile.completed_topic_count,
    }


def calculate_certifications_score(earned, required_certs: List[str]) -> Dict:
    if not required_certs:
        return {"percentage": 100, "matched": [], "total": 0}

    matched = [
        cert for cert in required_certs
        if any(_contains_either_way(name, _norm(cert)) for name in earned)
    ]
    return {
        "percentage": round_half_up(len(matched) / len(required_certs) * 100),
        "matched": matched,
        "total": len(required_certs),
    }


def generate_recommendations(missing_skills: List[str]) -> List[Recommendation]:
    return [
        Recommendation(
            skill=skill,
            type="skill_gap",
            suggestion=f"Consider learning {skill} to improve your match",
            action="Browse roadmaps and courses related to this skill",
        )
        for skill in missing_skills
    ]


@log_function_call
def calculate_match_score(
    user: UserModel,
    job: JobPostingModel,
    weights: ScoringWeights = DEFAULT_WEIGHTS,
) -> MatchResult:
    """
    Score a candidate against a job posting.

    Args:
        user: candidate's learning record
        job: job posting whose requirements are scored against
        weights: category weights, summing to 1.0

    Returns:
        MatchResult with overall score, per-category breakdown, skill gaps
        and recommendations
    """
    profile = build_candidate_profile(user)
    requirements = job.requirements

    skills = calculate_skills_score(profile.skills, requirements.skills)
    experience = calculate_experience_score(profile, requirements)
    certifications = calculate_certifications_score(profile.certifications, requirements.certifications)

    # Category percentages are already rounded; rounding the weighted sum again
    # can differ by one from a single rounding. Stored scores depend on it.
    overall = round_half_up(
        skills["percentage"] * weights.skills
        + experience["percentage"] * weights.experience
        + certifications["percentage"] * weights.certifications
    )

    return MatchResult(
        overall=overall,
        breakdown=MatchBreakdown(
            skills=SkillsBreakdown(
                score=skills["percentage"],
                weight=weights.skills,
                contribution=round_half_up(skills["percentage"] * weights.skills),
                matched=skills["matched"],
                missing=skills["missing"],
                total=skills["total"],
            ),
            experience=ExperienceBreakdown(
                score=experience["percentage"],
                weight=weights.experience,
                contribution=round_half_up(experience["percentage"] * weights.experience),
                user_level=experience["user_level"],
                effective_level=experience["effective_level"],
                required_level=experience["required_level"],
                study_hours=experience["study_hours"],
                completed_topics=experience["completed_topics"],
            ),
            certifications=CertificationsBreakdown(
                score=certifications["percentage"],
                weight=weights.certifications,
                contribution=round_half_up(certifications["percentage"] * weights.certifications),
                matched=certifications["matched"],
                total=certifications["total"],
            ),
        ),
        skill_gaps=skills["missing"],
        recommendations=generate_recommendations(skills["missing"]),
    )


async def load_user(user_id: str) -> Optional[UserModel]:
    with ExceptionContext("load_user", logger, user_id=user_id):
        doc = await users_coll.find_one({"user_id": user_id})
    return UserModel(**doc) if doc else None


async def load_job(job_id: str) -> JobPostingModel:
    with ExceptionContext("load_job", logger, job_id=job_id):
        doc = await jobs_coll.find_one({"job_id": job_id})
    if not doc:
        raise ResourceNotFoundError("Job not found", resource="job", resource_id=job_id)
    return JobPostingModel(**doc)


@log_function_call
async def batch_calculate_scores(
    user_ids: List[str],
    job_id: str,
    weights: ScoringWeights = DEFAULT_WEIGHTS,
) -> List[RankedCandidate]:
    """Score several candidates against one job, best match first.

    Unknown user ids are skipped. Equal scores keep their input order.
    """
    job = await load_job(job_id)

    results = []
    with PerformanceMonitor(f"batch_calculate_scores[{len(user_ids)}]", logger):
        for user_id in user_ids:
            user = await load_user(user_id)
            if not user:
                logger.debug(f"Skipping unknown user {user_id} in batch scoring for job {job_id}")
                continue
            results.append(RankedCandidate(
                user_id=user.user_id,
                user_name=user.name,
                email=user.email,
                score=calculate_match_score(user, job, weights),
            ))

    results.sort(key=lambda r: r.score.overall, reverse=True)
    logger.info(f"Batch scored {len(results)} candidates for job {job_id}")
    return results
