"""Tests for core.oracle_classifier module."""

import base64
import json
import threading
from unittest.mock import MagicMock

import pytest
import requests

from core.config import OracleSettings
from core.diagnosis_engine import DiagnosisEngine
from core.history_ledger import HistoryLedger
from core.image_preprocessor import ImagePreprocessor
from core.oracle_classifier import (
    PROMPT,
    RemoteOracleClassifier,
    parse_oracle_response,
)
from core.utils import AnalysisCancelled, ClassificationError, DiseaseStage, ErrorKind


def reply(document):
    """Wrap a JSON document the way generateContent returns it."""
    text = document if isinstance(document, str) else json.dumps(document)
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


VALID = {
    "stage": "E2",
    "confidence": 0.91,
    "lesionCount": 14,
    "avgLesionSize": 7.5,
    "explanation": "Spots spreading across the blade.",
    "reasoningForFarmer": "Several brown spots with grey centers are joining together.",
    "detectedSymptoms": ["Brown-grey lesions", "Yellow halos"],
    "visualEvidenceRegions": "Lower-left of the leaf",
}


def session_returning(payload):
    response = MagicMock()
    response.json.return_value = payload
    response.raise_for_status.return_value = None
    session = MagicMock()
    session.post.return_value = response
    return session


@pytest.fixture
def leaf(healthy_grid):
    return ImagePreprocessor.from_array(healthy_grid, source="leaf.png")


@pytest.fixture
def settings():
    return OracleSettings(api_key="test-key", model="test-model", base_url="https://oracle.test/v1")


class TestParse:
    def test_valid_reply(self):
        result = parse_oracle_response(reply(VALID))
        assert result.stage == DiseaseStage.MID
        assert result.confidence == pytest.approx(0.91)
        assert result.lesion_count == 14
        assert result.avg_lesion_size == pytest.approx(7.5)
        assert result.reasoning.startswith("Several brown spots")
        assert result.detected_symptoms == ["Brown-grey lesions", "Yellow halos"]
        assert result.visual_evidence_regions == "Lower-left of the leaf"

    def test_missing_lesion_count(self):
        doc = dict(VALID)
        del doc["lesionCount"]
        with pytest.raises(ClassificationError) as exc:
            parse_oracle_response(reply(doc))
        assert exc.value.kind == ErrorKind.INVALID_RESPONSE_SCHEMA
        assert "lesionCount" in exc.value.message

    def test_explanation_only_is_reasoning(self):
        doc = dict(VALID)
        del doc["reasoningForFarmer"]
        result = parse_oracle_response(reply(doc))
        assert result.reasoning == "Spots spreading across the blade."

    def test_no_reasoning_at_all(self):
        doc = dict(VALID)
        del doc["reasoningForFarmer"]
        del doc["explanation"]
        with pytest.raises(ClassificationError) as exc:
            parse_oracle_response(reply(doc))
        assert exc.value.kind == ErrorKind.INVALID_RESPONSE_SCHEMA

    def test_unknown_stage(self):
        with pytest.raises(ClassificationError) as exc:
            parse_oracle_response(reply(dict(VALID, stage="E9")))
        assert exc.value.kind == ErrorKind.INVALID_RESPONSE_SCHEMA

    @pytest.mark.parametrize("raw,expected", [(1.4, 1.0), (-0.2, 0.0), (0.5, 0.5)])
    def test_confidence_clamped(self, raw, expected):
        result = parse_oracle_response(reply(dict(VALID, confidence=raw)))
        assert result.confidence == expected

    @pytest.mark.parametrize("field", ["confidence", "lesionCount", "avgLesionSize"])
    @pytest.mark.parametrize("raw", ["NaN", "Infinity", "1e400"])
    def test_non_finite_numbers_rejected(self, field, raw):
        text = json.dumps(dict(VALID, **{field: 0})).replace(
            f'"{field}": 0', f'"{field}": {raw}'
        )
        with pytest.raises(ClassificationError) as exc:
            parse_oracle_response(reply(text))
        assert exc.value.kind == ErrorKind.INVALID_RESPONSE_SCHEMA

    def test_negative_lesion_count_rejected(self):
        with pytest.raises(ClassificationError):
            parse_oracle_response(reply(dict(VALID, lesionCount=-3)))

    def test_fractional_lesion_count_rounded(self):
        assert parse_oracle_response(reply(dict(VALID, lesionCount=6.6))).lesion_count == 7

    def test_extra_fields_ignored(self):
        result = parse_oracle_response(reply(dict(VALID, notes="extra")))
        assert result.stage == DiseaseStage.MID

    def test_text_not_json(self):
        with pytest.raises(ClassificationError) as exc:
            parse_oracle_response(reply("The leaf looks sick."))
        assert exc.value.kind == ErrorKind.INVALID_RESPONSE_SCHEMA

    @pytest.mark.parametrize("payload", [{}, {"candidates": []}, {"candidates": [{}]}, None])
    def test_no_content(self, payload):
        with pytest.raises(ClassificationError) as exc:
            parse_oracle_response(payload)
        assert exc.value.kind == ErrorKind.INVALID_RESPONSE_SCHEMA


class TestRequest:
    def test_body(self, leaf, settings):
        body = RemoteOracleClassifier(settings, session=MagicMock()).build_request(leaf)
        parts = body["contents"][0]["parts"]
        assert parts[0]["inline_data"]["mime_type"] == "image/jpeg"
        jpeg = base64.b64decode(parts[0]["inline_data"]["data"])
        assert jpeg[:2] == b"\xff\xd8"
        assert parts[1]["text"] == PROMPT
        assert body["generationConfig"]["responseMimeType"] == "application/json"

    def test_post(self, leaf, settings):
        session = session_returning(reply(VALID))
        RemoteOracleClassifier(settings, session=session).classify(leaf)

        session.post.assert_called_once()
        args, kwargs = session.post.call_args
        assert args[0] == "https://oracle.test/v1/models/test-model:generateContent"
        assert kwargs["headers"]["x-goog-api-key"] == "test-key"
        assert kwargs["timeout"] is None

    def test_no_key_header_without_key(self, leaf):
        session = session_returning(reply(VALID))
        RemoteOracleClassifier(OracleSettings(), session=session).classify(leaf)
        _, kwargs = session.post.call_args
        assert "x-goog-api-key" not in kwargs["headers"]


class TestFailures:
    def test_connection_error(self, leaf, settings):
        session = MagicMock()
        session.post.side_effect = requests.ConnectionError("network down")
        with pytest.raises(ClassificationError) as exc:
            RemoteOracleClassifier(settings, session=session).classify(leaf)
        assert exc.value.kind == ErrorKind.ORACLE_UNAVAILABLE

    def test_http_error(self, leaf, settings):
        session = session_returning({})
        session.post.return_value.raise_for_status.side_effect = requests.HTTPError("503")
        with pytest.raises(ClassificationError) as exc:
            RemoteOracleClassifier(settings, session=session).classify(leaf)
        assert exc.value.kind == ErrorKind.ORACLE_UNAVAILABLE

    def test_body_not_json(self, leaf, settings):
        session = session_returning(None)
        session.post.return_value.json.side_effect = ValueError("no json")
        with pytest.raises(ClassificationError) as exc:
            RemoteOracleClassifier(settings, session=session).classify(leaf)
        assert exc.value.kind == ErrorKind.INVALID_RESPONSE_SCHEMA

    def test_bad_reply_leaves_ledger_unchanged(self, healthy_grid, settings):
        doc = dict(VALID)
        del doc["lesionCount"]
        ledger = HistoryLedger()
        engine = DiagnosisEngine(
            RemoteOracleClassifier(settings, session=session_returning(reply(doc))), ledger
        )
        with pytest.raises(ClassificationError) as exc:
            engine.diagnose(healthy_grid)
        assert exc.value.kind == ErrorKind.INVALID_RESPONSE_SCHEMA
        assert ledger.count() == 0


class TestCancellation:
    def test_cancelled_before_request(self, leaf, settings):
        session = MagicMock()
        with pytest.raises(AnalysisCancelled):
            RemoteOracleClassifier(settings, session=session).classify(
                leaf, is_cancelled=lambda: True
            )
        session.post.assert_not_called()

    def test_cancel_while_waiting(self, leaf, settings):
        release = threading.Event()
        cancelled = threading.Event()

        def slow_post(*args, **kwargs):
            release.wait(5)
            return session_returning(reply(VALID)).post()

        session = MagicMock()
        session.post.side_effect = slow_post

        def is_cancelled():
            # Cancel once the request is in flight.
            if session.post.called:
                cancelled.set()
            return cancelled.is_set()

        try:
            with pytest.raises(AnalysisCancelled):
                RemoteOracleClassifier(settings, session=session).classify(
                    leaf, is_cancelled=is_cancelled
                )
        finally:
            release.set()

    def test_completes_when_not_cancelled(self, leaf, settings):
        session = session_returning(reply(VALID))
        result = RemoteOracleClassifier(settings, session=session).classify(
            leaf, is_cancelled=lambda: False
        )
        assert result.stage == DiseaseStage.MID
