from .classifier_service import QueryClassifierService
from .llm_client import LLMClient, LLMClientError
from .preprocessor import PreprocessedQuery, QueryPreprocessor
from .rule_classifier import RuleBasedClassifier
from .validator import ClassificationValidator

__all__ = [
    "ClassificationValidator",
    "LLMClient",
    "LLMClientError",
    "PreprocessedQuery",
    "QueryClassifierService",
    "QueryPreprocessor",
    "RuleBasedClassifier",
]
