"""Analysis package: prompt templates, service client & result formatting."""

from coascan.analysis.engine import AnalysisEngine, compose_prompt
from coascan.analysis.formatter import normalize, render
from coascan.analysis.templates import PromptTemplates

__all__ = ["AnalysisEngine", "PromptTemplates", "compose_prompt", "normalize", "render"]
