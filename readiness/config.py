"""
Configuration management using Pydantic Settings
"""
from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""
    
    # Database
    DATABASE_URL: str = "sqlite:///./readiness.db"
    
    # Gemini API
    GEMINI_API_KEY: str = ""
    GEMINI_MODEL: str = "gemini-2.5-flash"
    
    # Redis
    REDIS_URL: str = "redis://localhost:6379/0"
    
    # Application
    APP_NAME: str = "Placement Readiness Platform"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ALLOWED_ORIGINS: List[str] = ["http://localhost:5173", "http://localhost:8000"]
    
    # Rate Limiting
    RATE_LIMIT_PER_MINUTE: int = 60
    RATE_LIMIT_PER_HOUR: int = 1000
    
    # Assessment Settings
    DEFAULT_NUM_QUESTIONS: int = 5
    MAX_NUM_QUESTIONS: int = 10
    AI_MAX_RETRIES: int = 1  # single in-memory retry on transport failure
    STUDENT_EMAIL_DOMAIN: str = "college.edu"
    
    # Messaging
    DEFAULT_TPO_USERNAME: str = "TPO Admin"
    REALTIME_QUEUE_SIZE: int = 100
    
    # Learning Path Settings
    LEARNING_PATH_CACHE_TTL: int = 3600  # 1 hour
    MAX_RECOMMENDED_COURSES: int = 8
    
    # Resume uploads
    RESUME_UPLOAD_DIR: str = "/tmp/readiness-resumes"
    MAX_RESUME_BYTES: int = 512 * 1024
    
    # Logging
    LOG_LEVEL: str = "INFO"
    
    class Config:
        env_file = ".env"
        case_sensitive = True


# Global settings instance
settings = Settings()
