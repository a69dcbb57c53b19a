"""External collaborators used by the pipeline (classification)."""

from newsreel.tools.classifier import (
    Classifier, LLMClassifier, MockClassifier, get_classifier,
)

__all__ = ["Classifier", "LLMClassifier", "MockClassifier", "get_classifier"]
