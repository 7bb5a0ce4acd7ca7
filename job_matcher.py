"""
Job/candidate scoring with the chat completion API.

``calculate_job_match`` scores a single candidate against a job and never
raises; ``generate_matches`` scores every processed candidate of a job and
stores one Match per pair.
"""

import time
import logging
from typing import Any, Dict, List, Optional

from flask import current_app

import ai_client
from database import db
from models import Candidate, Match, ProcessingStatus, Recommendation
from utils import round_half_up

logger = logging.getLogger(__name__)

MATCH_SYSTEM_PROMPT = "You are an expert recruiter. Analyze job-candidate fit objectively and return ONLY valid JSON."

MATCH_PROMPT = """Analyze how well this candidate matches the job requirements. Be generous but realistic in scoring. Return ONLY valid JSON:

{{
  "score": 85,
  "explanation": "Brief explanation of why this score was given",
  "strengths": ["specific strength 1", "specific strength 2"],
  "concerns": ["specific concern 1", "specific concern 2"],
  "recommendation": "strong_fit"
}}

Job Details:
Title: {title}
Description: {description}
Required Skills: {skills}
Experience Required: {experience}
Location: {location}

Candidate Profile:
Name: {name}
Skills: {candidate_skills}
Summary: {summary}
Experience: {positions} positions listed

Scoring Guidelines (be generous but fair):
- If candidate has relevant skills or experience, give at least 60-70%
- If candidate has some transferable skills, give 50-65%
- Only give very low scores (0-30%) if completely unrelated
- Consider potential and learning ability

Use this scoring guide:
90-100: Perfect match - all requirements met
80-89: Strong fit - most requirements met
70-79: Good fit - many requirements met
60-69: Potential fit - some requirements met
50-59: Weak fit - few requirements met
30-49: Poor fit - minimal relevance
0-29: Not recommended - no relevance

Recommendation options: "strong_fit", "good_fit", "potential_fit", "weak_fit", "not_recommended"
"""

FAILED_MATCH = {
    'score': 50,
    'explanation': "AI analysis failed",
    'strengths': ["Unable to analyze"],
    'concerns': ["AI processing error"],
    'recommendation': Recommendation.WEAK_FIT.value
}


class NoCandidatesError(Exception):
    """The job has no processed candidates to score"""


def recommendation_for_score(score: int) -> str:
    if score >= 80:
        return Recommendation.STRONG_FIT.value
    elif score >= 70:
        return Recommendation.GOOD_FIT.value
    elif score >= 60:
        return Recommendation.POTENTIAL_FIT.value
    elif score >= 50:
        return Recommendation.WEAK_FIT.value
    return Recommendation.NOT_RECOMMENDED.value

def _string_list(value) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if item]

def build_match_prompt(job, candidate) -> str:
    requirements = job.requirements or {}
    ai_data = candidate.ai_data or {}

    return MATCH_PROMPT.format(
        title=job.title,
        description=job.description,
        skills=', '.join(job.required_skills) or 'Not specified',
        experience=requirements.get('experience') or 'Not specified',
        location=requirements.get('location') or 'Not specified',
        name=candidate.name,
        candidate_skills=', '.join(candidate.skills) or 'Not specified',
        summary=ai_data.get('summary') or 'Not available',
        positions=len(ai_data.get('experience') or [])
    )

def calculate_job_match(job, candidate) -> Dict[str, Any]:
    """Score how well a candidate fits a job.

    Returns ``{score, explanation, strengths, concerns, recommendation}`` with
    the score clamped to 0..100. Any failure, including a missing API key,
    returns a neutral weak-fit result.
    """
    try:
        result = ai_client.chat_json(MATCH_SYSTEM_PROMPT, build_match_prompt(job, candidate),
                                     temperature=0.3, max_tokens=800)

        score = max(0, min(100, round_half_up(float(result.get('score')))))

        recommendation = result.get('recommendation')
        if recommendation not in [r.value for r in Recommendation]:
            recommendation = recommendation_for_score(score)

        return {
            'score': score,
            'explanation': str(result.get('explanation') or ''),
            'strengths': _string_list(result.get('strengths')),
            'concerns': _string_list(result.get('concerns')),
            'recommendation': recommendation
        }

    except Exception as e:
        logger.error(f"OpenAI matching error for candidate {candidate.id}: {e}")
        return dict(FAILED_MATCH, strengths=list(FAILED_MATCH['strengths']), concerns=list(FAILED_MATCH['concerns']))

def generate_matches(job, regenerate: bool = False, delay: Optional[float] = None) -> Dict[str, Any]:
    """Score every completed candidate of a job and store the results.

    Existing matches are reused unless ``regenerate`` is set, in which case
    they are replaced. Failures for one candidate are reported and do not
    stop the run.
    """
    if delay is None:
        delay = current_app.config.get('MATCH_REQUEST_DELAY', 1.0)

    candidates = Candidate.query.filter_by(
        job_id=job.id,
        processing_status=ProcessingStatus.COMPLETED
    ).order_by(Candidate.created_at).all()

    if not candidates:
        raise NoCandidatesError("No candidates found for this job")

    logger.info(f"Generating matches for {len(candidates)} candidates of job {job.id}...")

    matches = []
    errors = []

    for index, candidate in enumerate(candidates, start=1):
        try:
            logger.info(f"Processing candidate {index}/{len(candidates)}: {candidate.name}")

            existing = Match.query.filter_by(job_id=job.id, candidate_id=candidate.id).first()
            if existing and not regenerate:
                logger.info(f"Skipping {candidate.name} - match already exists")
                matches.append(existing)
                continue

            result = calculate_job_match(job, candidate)

            if existing:
                db.session.delete(existing)
                db.session.flush()

            match = Match(
                organization_id=job.organization_id,
                job_id=job.id,
                candidate_id=candidate.id,
                score=result['score'],
                explanation=result['explanation'],
                strengths=result['strengths'],
                concerns=result['concerns'],
                recommendation=result['recommendation']
            )
            db.session.add(match)
            db.session.commit()
            matches.append(match)

            logger.info(f"{candidate.name}: {result['score']}% match")

            if delay:
                time.sleep(delay)

        except Exception as e:
            db.session.rollback()
            logger.error(f"Error processing {candidate.name}: {e}")
            errors.append({
                'candidateId': candidate.id,
                'candidateName': candidate.name,
                'error': str(e)
            })

    matches.sort(key=lambda m: m.score, reverse=True)

    summary = {
        'jobId': job.id,
        'jobTitle': job.title,
        'totalCandidates': len(candidates),
        'successfulMatches': len(matches),
        'errors': len(errors),
        'matches': [match.to_dict() for match in matches]
    }
    if errors:
        summary['errorDetails'] = errors

    return summary

def match_statistics(scores: List[int]) -> Dict[str, Any]:
    """Aggregate figures over a job's match scores"""
    total = len(scores)
    return {
        'totalMatches': total,
        'averageScore': round_half_up(sum(scores) / total) if total else 0,
        'highestScore': max(scores) if scores else 0,
        'lowestScore': min(scores) if scores else 0,
        'strongFits': len([s for s in scores if s >= 80]),
        'goodFits': len([s for s in scores if 60 <= s < 80]),
        'poorFits': len([s for s in scores if s < 60])
    }
