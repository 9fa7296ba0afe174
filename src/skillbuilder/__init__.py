"""SkillBuilder: project-level AI instructions for multiple editors."""

__version__ = "0.1.0"
__author__ = "SkillBuilder Contributors"
__description__ = "Project-level AI instructions for multiple editors"

from .cache import SourceCache
from .generators import RuleGenerator, generate_all_rules
from .ingestion import IngestionPipeline, build_all_skills, build_skill
from .merge import merge_blocks, safe_merge
from .models import MergeOutcome, MergeResult, Skill, SkillBuilderConfig

__all__ = [
    "IngestionPipeline",
    "MergeOutcome",
    "MergeResult",
    "RuleGenerator",
    "Skill",
    "SkillBuilderConfig",
    "SourceCache",
    "build_all_skills",
    "build_skill",
    "generate_all_rules",
    "merge_blocks",
    "safe_merge",
]
