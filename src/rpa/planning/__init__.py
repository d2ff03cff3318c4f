"""Plan value objects plus the parsing, normalisation and classification helpers."""

from .classifier import StepClassifier, detect_file_paths
from .keywords import KeywordTables
from .normalizer import normalize_plan
from .parser import parse_plan
from .schemas import Plan, PlanStep

__all__ = [
    "KeywordTables",
    "Plan",
    "PlanStep",
    "StepClassifier",
    "detect_file_paths",
    "normalize_plan",
    "parse_plan",
]
