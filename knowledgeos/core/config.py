"""
Centralized Configuration Management for KnowledgeOS

Provides pydantic-based configuration with:
- Environment variable loading (.env support)
- Type validation
- Default values

The knowledge store itself never reads this module: it is handed an
explicit root directory. Only the CLI and the layout helpers do.

Usage:
    from knowledgeos.core.config import get_config

    config = get_config()
    print(config.resolved_knowledge_dir)
"""

from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class KnowledgeOSConfig(BaseSettings):
    """
    Central configuration for KnowledgeOS

    All settings can be overridden via environment variables with KNOWLEDGEOS_ prefix.
    For example: KNOWLEDGEOS_KNOWLEDGE_DIR, KNOWLEDGEOS_LOG_LEVEL, etc.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="KNOWLEDGEOS_",
        case_sensitive=False,
        extra="ignore",
    )

    # ============================================
    # Storage Configuration
    # ============================================

    home: Path = Field(
        default_factory=lambda: Path.home() / ".knowledgeos",
        description="Application home directory"
    )

    knowledge_dir: Optional[Path] = Field(
        default=None,
        description="Knowledge store root (default: <home>/knowledge)"
    )

    @property
    def resolved_knowledge_dir(self) -> Path:
        """Knowledge store root.

        Priority:
        1. Explicit knowledge_dir (via env or config)
        2. <home>/knowledge
        """
        if self.knowledge_dir is not None:
            return Path(self.knowledge_dir).expanduser()
        return Path(self.home).expanduser() / "knowledge"

    # ============================================
    # Version Log Configuration
    # ============================================

    git_user_name: str = Field(
        default="Knowledge Store",
        description="Committer name written into a newly created knowledge repo"
    )

    git_user_email: str = Field(
        default="knowledge@knowledgeos.local",
        description="Committer email written into a newly created knowledge repo"
    )

    # ============================================
    # Knowledge Behaviour
    # ============================================

    auto_learn_confidence: float = Field(
        default=0.7,
        ge=0.0,
        le=1.0,
        description="Confidence given to entries learned from research results"
    )

    context_max_size: int = Field(
        default=8000,
        gt=0,
        description="Default byte budget for relevant-knowledge context"
    )

    # ============================================
    # Application Configuration
    # ============================================

    log_level: str = Field(
        default="INFO",
        description="Logging level: DEBUG, INFO, WARNING, ERROR, CRITICAL"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level"""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(
                f"log_level must be one of: {', '.join(valid_levels)}"
            )
        return v.upper()


# Global config instance
_config: Optional[KnowledgeOSConfig] = None


def get_config(force_reload: bool = False) -> KnowledgeOSConfig:
    """
    Get the global configuration instance

    Args:
        force_reload: Force reload configuration from environment

    Returns:
        KnowledgeOSConfig instance
    """
    global _config

    if _config is None or force_reload:
        _config = KnowledgeOSConfig()

    return _config
