"""Default regex-based collaborators for the discovery pipeline."""

from pattern_kb.discovery.auxiliary import (
    AnalyticsMiner,
    FeatureFlagMiner,
    I18nMiner,
    default_auxiliary_miners,
)
from pattern_kb.discovery.baseline import BaselineGenerator
from pattern_kb.discovery.elements import ElementMiner
from pattern_kb.discovery.packs import FrameworkPackLoader
from pattern_kb.discovery.profile import ProjectDiscovery, run_discovery
from pattern_kb.discovery.templates import TemplateGenerator

__all__ = [
    "AnalyticsMiner",
    "BaselineGenerator",
    "ElementMiner",
    "FeatureFlagMiner",
    "FrameworkPackLoader",
    "I18nMiner",
    "ProjectDiscovery",
    "TemplateGenerator",
    "default_auxiliary_miners",
    "run_discovery",
]
