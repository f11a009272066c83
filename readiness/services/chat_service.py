"""
AI career chat grounded in the student's resume analysis
"""
import logging
from typing import AsyncIterator, Optional, Sequence

from readiness.schemas.resume import ChatMessage, ResumeAnalysis
from readiness.services.gemini_service import gemini_service

logger = logging.getLogger(__name__)


class ChatService:
    """Streams assistant replies as text deltas"""
    
    def __init__(self, gateway=None):
        self.gateway = gateway or gemini_service
    
    async def stream_reply(
        self,
        messages: Sequence[ChatMessage],
        resume_analysis: Optional[ResumeAnalysis] = None,
        username: Optional[str] = None
    ) -> AsyncIterator[str]:
        """
        Raises:
            AIServiceError: before the first delta if the gateway rejects the call
        """
        history = [{"role": m.role, "content": m.content} for m in messages]
        logger.info(f"Career chat for {username or 'anonymous'}: {len(history)} messages")
        async for delta in self.gateway.stream(
            history, system_instruction=self.system_prompt(resume_analysis, username)
        ):
            yield delta
    
    @staticmethod
    def system_prompt(resume_analysis: Optional[ResumeAnalysis], username: Optional[str]) -> str:
        if resume_analysis is not None:
            a = resume_analysis
            context = f"""
## Resume Analysis Context
The user has uploaded a resume with the following analysis:

**Overall Score: {a.overall_score}%**

Score Breakdown:
- Skill Match Score: {a.skill_match_score}% (30% weight)
- Project Quality Score: {a.project_quality_score}% (25% weight)
- Experience Score: {a.experience_score}% (15% weight)
- Resume Structure Score: {a.resume_structure_score}% (10% weight)
- Action Verbs Score: {a.action_verbs_score}% (10% weight)
- Consistency Score: {a.consistency_score}% (10% weight)

Skills Found: {", ".join(a.matched_skills) or "None detected"}
Missing Skills: {", ".join(a.missing_skills) or "None"}

Recommendations: {"; ".join(a.recommendations) or "None"}
"""
        else:
            context = "No resume has been analyzed yet. Encourage the user to upload their resume first."
        
        return f"""You are an AI Career Assistant helping {username or "a student"} understand their resume and improve their career prospects.

{context}

## Your Role
1. Answer questions about the resume analysis in a helpful, encouraging way
2. Provide specific, actionable advice for improving their resume
3. Explain how different scores are calculated when asked
4. Suggest skills to learn based on their target track
5. Help them understand job market expectations
6. Be concise but thorough - use bullet points and formatting for clarity

Keep responses focused and practical. Use markdown formatting for better readability."""


# Global instance
chat_service = ChatService()
