"""
Keyword-based resume scoring

A fixed weighted sum over keyword counts. No AI is involved, so the same
text always gets the same score.
"""
import math
from typing import Dict, List, Optional

from readiness.schemas.assessment import Track
from readiness.schemas.resume import ResumeAnalysis

TRACK_SKILLS: Dict[Track, List[str]] = {
    Track.PROGRAMMING_DSA: [
        "c", "c++", "java", "python", "data structures", "algorithms",
        "arrays", "linked list", "trees", "graphs", "dynamic programming",
        "sorting", "searching", "recursion", "competitive programming",
    ],
    Track.DATA_SCIENCE_ML: [
        "python", "tensorflow", "pytorch", "machine learning", "deep learning",
        "neural networks", "data science", "pandas", "numpy", "scikit-learn",
        "nlp", "computer vision", "keras", "jupyter", "data analysis",
    ],
    Track.DATABASE_SQL: [
        "sql", "mysql", "postgresql", "mongodb", "database", "normalization",
        "indexing", "query optimization", "joins", "stored procedures",
        "nosql", "redis", "data modeling", "acid", "transactions",
    ],
    Track.BACKEND_WEB: [
        "node.js", "express", "rest api", "graphql", "javascript", "typescript",
        "docker", "git", "ci/cd", "microservices", "authentication", "jwt",
        "websockets", "nginx", "aws",
    ],
}

ACTION_VERBS = [
    "developed", "implemented", "designed", "created", "built", "led",
    "managed", "optimized", "improved", "achieved", "delivered", "launched",
    "automated", "integrated", "analyzed", "reduced", "increased", "enhanced",
]

PROJECT_KEYWORDS = ["project", "built", "developed", "created", "implemented"]
EXPERIENCE_KEYWORDS = ["experience", "years", "intern", "engineer", "developer", "analyst"]
SECTIONS = ["skills", "experience", "education", "projects", "summary"]

WEIGHTS = {
    "skill_match": 0.30,
    "project_quality": 0.25,
    "experience": 0.15,
    "structure": 0.10,
    "action_verbs": 0.10,
    "consistency": 0.10,
}


def _round(value: float) -> int:
    # Half up, not banker's rounding
    return int(math.floor(value + 0.5))


def _count(content: str, keywords: List[str]) -> int:
    return sum(content.count(kw) for kw in keywords)


def required_skills(track: Optional[Track]) -> List[str]:
    if track is not None:
        return list(TRACK_SKILLS[Track(track)])
    return [skill for skills in TRACK_SKILLS.values() for skill in skills]


def score_resume(text: str, track: Optional[Track] = None, file_name: str = "") -> ResumeAnalysis:
    """
    Score resume text against a track (or every track when none is given)
    
    Returns:
        ResumeAnalysis with rounded 0-100 scores
    """
    content = text.lower()
    skills = required_skills(track)
    
    matched = [s for s in skills if s in content]
    missing = [s for s in skills if s not in content][:5]
    skill_match = len(matched) / len(skills) * 100 if skills else 0.0
    
    project_quality = min(_count(content, PROJECT_KEYWORDS) * 10, 100)
    experience = min(_count(content, EXPERIENCE_KEYWORDS) * 12, 100)
    structure = sum(1 for s in SECTIONS if s in content) / len(SECTIONS) * 100
    action_verbs = min(_count(content, ACTION_VERBS) * 8, 100)
    consistency = min(structure * 0.5 + action_verbs * 0.5, 100)
    
    overall = (
        WEIGHTS["skill_match"] * skill_match
        + WEIGHTS["project_quality"] * project_quality
        + WEIGHTS["experience"] * experience
        + WEIGHTS["structure"] * structure
        + WEIGHTS["action_verbs"] * action_verbs
        + WEIGHTS["consistency"] * consistency
    )
    
    recommendations = []
    if skill_match < 50:
        label = Track(track).value if track is not None else "technical"
        recommendations.append(f"Add more {label} skills to your resume")
    if project_quality < 50:
        recommendations.append("Include more project descriptions with quantified outcomes")
    if action_verbs < 50:
        recommendations.append('Use more action verbs like "developed", "implemented", "led"')
    if missing:
        recommendations.append(f"Consider learning: {', '.join(missing[:3])}")
    
    return ResumeAnalysis(
        file_name=file_name,
        skill_match_score=_round(skill_match),
        project_quality_score=_round(project_quality),
        experience_score=_round(experience),
        resume_structure_score=_round(structure),
        action_verbs_score=_round(action_verbs),
        consistency_score=_round(consistency),
        overall_score=_round(overall),
        matched_skills=matched,
        missing_skills=missing,
        recommendations=recommendations,
    )
