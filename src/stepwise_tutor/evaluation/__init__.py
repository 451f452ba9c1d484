from .base import LocalSimilarityEvaluator, StepEvaluator
from .llm_client import LLMClient
from .llm_evaluator import LLMStepEvaluator
from .similarity import calculate_similarity, extract_validation_keywords, keyword_coverage

__all__ = [
    "LLMClient",
    "LLMStepEvaluator",
    "LocalSimilarityEvaluator",
    "StepEvaluator",
    "calculate_similarity",
    "extract_validation_keywords",
    "keyword_coverage",
]
