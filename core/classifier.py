"""Classifier interface and strategy selection."""

from abc import ABC, abstractmethod
from typing import Optional

from core.config import CLASSIFIER_LOCAL, CLASSIFIER_REMOTE, EngineConfig
from core.image_preprocessor import LeafImage
from core.utils import CancelCheck, Classification


class Classifier(ABC):
    """Assigns a disease stage to a leaf image.

    Implementations raise ClassificationError on bad input or when their
    backing service fails. They never return a partially filled result.
    """

    NAME = ""

    @abstractmethod
    def classify(
        self, image: LeafImage, is_cancelled: Optional[CancelCheck] = None
    ) -> Classification:
        ...


def create_classifier(config: EngineConfig, session=None) -> Classifier:
    """Build the classifier selected by ``config.classifier``.

    ``session`` is the requests.Session the remote classifier should use; the
    caller owns its lifecycle.
    """
    if config.classifier == CLASSIFIER_LOCAL:
        from core.heuristic_classifier import LocalHeuristicClassifier
        return LocalHeuristicClassifier(config.thresholds)
    elif config.classifier == CLASSIFIER_REMOTE:
        from core.oracle_classifier import RemoteOracleClassifier
        return RemoteOracleClassifier(config.oracle, session=session)
    raise ValueError(f"Unknown classifier: {config.classifier}")
