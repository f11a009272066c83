"""
Database models package
"""
from readiness.models.student import Student
from readiness.models.assessment_result import AssessmentRecord
from readiness.models.course import Course
from readiness.models.learning_path import LearningPath
from readiness.models.message import Message
from readiness.models.resume import Resume

__all__ = ["Student", "AssessmentRecord", "Course", "LearningPath", "Message", "Resume"]
