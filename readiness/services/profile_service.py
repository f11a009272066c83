"""
LinkedIn profile analysis

Profiles cannot be scraped, so the student pastes the profile text and the
AI scores it.
"""
import logging
from typing import Any, Dict, Optional

from readiness.schemas.assessment import Track
from readiness.schemas.resume import LinkedInAnalysis
from readiness.services.gemini_service import extract_json, gemini_service

logger = logging.getLogger(__name__)

MIN_PROFILE_CHARS = 30
MAX_PROFILE_CHARS = 10000

_SCORE_FIELDS = (
    "overallScore", "skillMatchScore", "projectQualityScore", "experienceScore",
    "profileCompletenessScore", "networkStrengthScore", "contentQualityScore",
)

_LIST_FIELDS = ("matchedSkills", "missingSkills", "strengths", "improvements")


class ProfileTooShort(ValueError):
    """Pasted profile text is too short to analyze"""


class ProfileService:
    """AI scoring of pasted LinkedIn profiles"""
    
    def __init__(self, gateway=None):
        self.gateway = gateway or gemini_service
    
    async def analyze_linkedin(self, profile_text: str, track: Optional[Track] = None) -> LinkedInAnalysis:
        """
        Raises:
            ProfileTooShort: fewer than 30 non-blank characters
            AIServiceError: gateway failure or unparseable payload
        """
        if not profile_text or len(profile_text.strip()) < MIN_PROFILE_CHARS:
            raise ProfileTooShort(
                "Please paste your LinkedIn profile content (About, Experience, Skills, "
                "Education sections). LinkedIn blocks automated scraping, so we need you "
                "to copy-paste the text from your profile page."
            )
        
        text = await self.gateway.complete(
            f"Analyze this LinkedIn profile:\n\n{profile_text[:MAX_PROFILE_CHARS]}",
            system_instruction=self._system_prompt(track)
        )
        analysis = self.sanitize(extract_json(text, expect=dict))
        logger.info(f"LinkedIn analysis complete for {analysis.name or 'Unknown'}")
        return analysis
    
    @staticmethod
    def sanitize(data: Dict[str, Any]) -> LinkedInAnalysis:
        """Clamp scores to 0-100 and drop malformed fields"""
        cleaned: Dict[str, Any] = {}
        for key in _SCORE_FIELDS:
            try:
                cleaned[key] = min(100, max(0, int(round(float(data.get(key) or 0)))))
            except (TypeError, ValueError):
                cleaned[key] = 0
        for key in _LIST_FIELDS:
            value = data.get(key)
            cleaned[key] = [str(v) for v in value if v] if isinstance(value, list) else []
        for key in ("headline", "name"):
            cleaned[key] = str(data[key]) if data.get(key) else None
        cleaned["summary"] = str(data.get("summary") or "")
        return LinkedInAnalysis.model_validate(cleaned)
    
    @staticmethod
    def _system_prompt(track: Optional[Track]) -> str:
        track_context = f'The student is targeting the "{Track(track).value}" career track.' if track else ""
        return f"""You are an expert career analyst for placement preparation. Analyze the following LinkedIn profile content and provide a detailed assessment. {track_context}

Return your analysis in the following JSON format (and ONLY the JSON, no extra text):
{{
  "overallScore": <number 0-100>,
  "headline": "<person's headline or title if found>",
  "name": "<person's name if found>",
  "skillMatchScore": <number 0-100>,
  "projectQualityScore": <number 0-100>,
  "experienceScore": <number 0-100>,
  "profileCompletenessScore": <number 0-100>,
  "networkStrengthScore": <number 0-100>,
  "contentQualityScore": <number 0-100>,
  "matchedSkills": ["skill1", "skill2", ...],
  "missingSkills": ["skill1", "skill2", ...],
  "strengths": ["strength1", "strength2", ...],
  "improvements": ["improvement1", "improvement2", ...],
  "summary": "<2-3 sentence summary of the profile>"
}}

Score criteria:
- overallScore: weighted average of all scores
- skillMatchScore: relevance of skills to the target track or general industry demand
- projectQualityScore: quality and relevance of projects/portfolio mentioned
- experienceScore: depth and relevance of work experience
- profileCompletenessScore: how complete the profile appears (about, experience, education, skills sections)
- networkStrengthScore: connections, recommendations, endorsements indicators
- contentQualityScore: quality of descriptions, headlines, about section

Be thorough and fair in your assessment. If limited information is provided, note that in the summary and adjust scores accordingly."""


# Global instance
profile_service = ProfileService()
