"""Stage classification delegated to a remote vision model (Gemini REST API).

One HTTP request per classification, no retries. The response must be JSON
matching ``OracleResponse``; anything else is an INVALID_RESPONSE_SCHEMA error.
"""

import base64
import json
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from typing import List, Optional

import requests
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from core.classifier import Classifier
from core.config import OracleSettings
from core.image_preprocessor import ImagePreprocessor, LeafImage
from core.utils import (
    AnalysisCancelled,
    CancelCheck,
    Classification,
    ClassificationError,
    DiseaseStage,
    ErrorKind,
)

logger = logging.getLogger(__name__)

PROMPT = """Analyze this Kangkung (Water Spinach) leaf for Cercospora Leaf Spot.
Classify it into one of these categories: H0 (Healthy), E1 (Early), E2 (Mid), E3 (Severe), or N0 (Invalid/Poor quality).

Return the results in strict JSON format with these fields:
- stage: (H0, E1, E2, E3, or N0)
- confidence: (0 to 1)
- lesionCount: (number)
- avgLesionSize: (number in mm)
- explanation: (short summary)
- reasoningForFarmer: (A simple explanation for a farmer: explain WHY you chose this stage based on visual evidence like spot color, size, or spread. Use plain language.)
- detectedSymptoms: (list of specific visual cues you see in this EXACT image)
- visualEvidenceRegions: (description of where the most prominent lesions are)
"""

RESPONSE_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "stage": {"type": "STRING"},
        "confidence": {"type": "NUMBER"},
        "lesionCount": {"type": "NUMBER"},
        "avgLesionSize": {"type": "NUMBER"},
        "explanation": {"type": "STRING"},
        "reasoningForFarmer": {"type": "STRING"},
        "detectedSymptoms": {"type": "ARRAY", "items": {"type": "STRING"}},
        "visualEvidenceRegions": {"type": "STRING"},
    },
    "required": [
        "stage", "confidence", "lesionCount", "avgLesionSize", "explanation",
        "reasoningForFarmer", "detectedSymptoms", "visualEvidenceRegions",
    ],
}

CANCEL_POLL_INTERVAL_S = 0.1


class OracleResponse(BaseModel):
    """The JSON document the oracle must return."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", allow_inf_nan=False)

    stage: DiseaseStage
    confidence: float
    lesion_count: float = Field(alias="lesionCount", ge=0)
    avg_lesion_size: float = Field(alias="avgLesionSize", ge=0)
    reasoning: str = Field(
        validation_alias=AliasChoices("reasoningForFarmer", "explanation", "reasoning")
    )
    detected_symptoms: List[str] = Field(alias="detectedSymptoms")
    visual_evidence_regions: str = Field(alias="visualEvidenceRegions")

    @field_validator("confidence")
    @classmethod
    def _clamp_confidence(cls, value: float) -> float:
        if not 0.0 <= value <= 1.0:
            logger.warning("Oracle confidence %s outside [0, 1], clamping", value)
        return min(max(value, 0.0), 1.0)

    def to_classification(self) -> Classification:
        return Classification(
            stage=self.stage,
            confidence=self.confidence,
            lesion_count=int(round(self.lesion_count)),
            avg_lesion_size=self.avg_lesion_size,
            reasoning=self.reasoning,
            detected_symptoms=list(self.detected_symptoms),
            visual_evidence_regions=self.visual_evidence_regions,
        )


def parse_oracle_response(payload: dict) -> Classification:
    """Extract and validate the classification from a generateContent reply."""
    try:
        text = payload["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError) as e:
        raise ClassificationError(
            ErrorKind.INVALID_RESPONSE_SCHEMA, "Oracle reply has no content"
        ) from e

    try:
        data = json.loads(text)
    except (TypeError, ValueError) as e:
        raise ClassificationError(
            ErrorKind.INVALID_RESPONSE_SCHEMA, f"Oracle reply is not JSON: {e}"
        ) from e

    try:
        return OracleResponse.model_validate(data).to_classification()
    except ValidationError as e:
        missing = [".".join(str(p) for p in err["loc"]) for err in e.errors()]
        raise ClassificationError(
            ErrorKind.INVALID_RESPONSE_SCHEMA,
            f"Oracle reply failed validation: {', '.join(missing)}",
        ) from e


class RemoteOracleClassifier(Classifier):
    """Sends the photo and a fixed prompt to the vision oracle."""

    NAME = "remote-oracle"

    def __init__(self, settings: OracleSettings, session: Optional[requests.Session] = None):
        self._settings = settings
        self._session = session or requests.Session()

    def build_request(self, image: LeafImage) -> dict:
        """Request body for generateContent."""
        encoded = base64.b64encode(ImagePreprocessor.encode_jpeg(image)).decode("ascii")
        return {
            "contents": [{
                "parts": [
                    {"inline_data": {"mime_type": self._settings.mime_type, "data": encoded}},
                    {"text": PROMPT},
                ],
            }],
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": RESPONSE_SCHEMA,
            },
        }

    def classify(
        self, image: LeafImage, is_cancelled: Optional[CancelCheck] = None
    ) -> Classification:
        """Classify via one oracle call. Raises ClassificationError on failure."""
        if is_cancelled and is_cancelled():
            raise AnalysisCancelled()

        body = self.build_request(image)

        if is_cancelled is None:
            payload = self._post(body)
        else:
            payload = self._post_cancellable(body, is_cancelled)

        result = parse_oracle_response(payload)
        logger.info(
            "Oracle classified %s as %s (confidence %.2f)",
            image.source or "image", result.stage.value, result.confidence,
        )
        return result

    def _post_cancellable(self, body: dict, is_cancelled: CancelCheck) -> dict:
        """Run the request on a helper thread and stop waiting once cancelled."""
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="oracle")
        try:
            future = executor.submit(self._post, body)
            while True:
                try:
                    return future.result(timeout=CANCEL_POLL_INTERVAL_S)
                except FutureTimeout:
                    if is_cancelled():
                        future.cancel()
                        logger.info("Oracle request abandoned after cancellation")
                        raise AnalysisCancelled()
        finally:
            executor.shutdown(wait=False)

    def _post(self, body: dict) -> dict:
        headers = {"Content-Type": "application/json"}
        if self._settings.api_key:
            headers["x-goog-api-key"] = self._settings.api_key

        start = time.time()
        try:
            response = self._session.post(
                self._settings.endpoint,
                json=body,
                headers=headers,
                timeout=self._settings.timeout_s,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            logger.error("Oracle request failed: %s", e)
            raise ClassificationError(
                ErrorKind.ORACLE_UNAVAILABLE, f"Oracle request failed: {e}"
            ) from e

        logger.debug("Oracle replied in %d ms", int((time.time() - start) * 1000))
        try:
            return response.json()
        except ValueError as e:
            raise ClassificationError(
                ErrorKind.INVALID_RESPONSE_SCHEMA, "Oracle reply body is not JSON"
            ) from e
