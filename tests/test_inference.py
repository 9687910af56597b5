"""
Tests for the lazy classifier session, the inference entry point, and the
HTTP endpoints.
"""

import io
import threading
import time

import numpy as np
import pytest
from PIL import Image

from classifier.decision import FALLBACK_LABEL, ClassificationResult, InferenceState
from classifier.exceptions import ClassifierFailure
from classifier.inference import classify_image
from classifier.model_loader import KerasFreshnessClassifier
from training.artifacts import save_class_names, save_model
from training.train import build_model, get_head

from .conftest import IMAGE_SIZE


class FakeClassifier:
    def __init__(self, label="Fresh Apple", score=0.92, error=None):
        self.result = ClassificationResult(label, score)
        self.error = error

    def classify(self, image_bytes):
        if self.error:
            raise self.error
        return self.result


def _set_output(model, prob):
    """Force the head to output *prob* for every input."""
    dense = get_head(model).layers[-1]
    kernel, bias = dense.get_weights()
    logit = np.log(prob / (1 - prob))
    dense.set_weights([np.zeros_like(kernel), np.full_like(bias, logit)])


class TestKerasFreshnessClassifier:
    """Tests for the Keras-backed classifier session."""

    @pytest.fixture
    def model(self, config, stub_backbone):
        return build_model(config, backbone=stub_backbone)

    def test_positive_class(self, model, png_bytes):
        _set_output(model, 0.9)
        result = KerasFreshnessClassifier(model, ["fresh", "rotten"]).classify(png_bytes)
        assert result.label == "rotten"
        assert result.score == pytest.approx(0.9, abs=1e-4)

    def test_negative_class(self, model, png_bytes):
        _set_output(model, 0.2)
        result = KerasFreshnessClassifier(model, ["freshapples", "rottenapples"]).classify(png_bytes)
        assert result.label == "freshapples"
        assert result.score == pytest.approx(0.8, abs=1e-4)

    def test_resizes_to_model_input(self, model):
        classifier = KerasFreshnessClassifier(model, ["fresh", "rotten"])
        buf = io.BytesIO()
        Image.new("L", (100, 40)).save(buf, format="JPEG")
        batch = classifier.preprocess(buf.getvalue())
        assert batch.shape == (1, IMAGE_SIZE, IMAGE_SIZE, 3)
        assert batch.dtype == np.float32

    def test_undecodable_bytes(self, model):
        classifier = KerasFreshnessClassifier(model, ["fresh", "rotten"])
        with pytest.raises(ClassifierFailure):
            classifier.classify(b"not an image")


class TestGetClassifier:
    """Tests for the process-wide lazy singleton."""

    def test_single_flight(self, reset_classifier, monkeypatch):
        calls = []

        def slow_load():
            calls.append(1)
            time.sleep(0.05)
            return object()

        monkeypatch.setattr(reset_classifier, "_load_classifier", slow_load)

        results = []
        threads = [
            threading.Thread(target=lambda: results.append(reset_classifier.get_classifier()))
            for _ in range(8)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(calls) == 1
        assert len(results) == 8
        assert all(r is results[0] for r in results)

    def test_failed_load_not_cached(self, reset_classifier, monkeypatch):
        attempts = []

        def flaky_load():
            attempts.append(1)
            if len(attempts) == 1:
                raise ClassifierFailure("weights not ready")
            return "classifier"

        monkeypatch.setattr(reset_classifier, "_load_classifier", flaky_load)

        with pytest.raises(ClassifierFailure):
            reset_classifier.get_classifier()
        assert reset_classifier.get_classifier() == "classifier"

    def test_loads_trained_artifact(self, reset_classifier, settings, config, stub_backbone, tmp_path):
        model = build_model(config, backbone=stub_backbone)
        save_model(model, tmp_path / "served" / "freshness.keras")
        save_class_names(["fresh", "rotten"], tmp_path / "served" / "classes.txt")
        settings.FRESHCHECK_MODEL_PATH = tmp_path / "served" / "freshness.keras"
        settings.FRESHCHECK_CLASSES_PATH = tmp_path / "served" / "classes.txt"

        classifier = reset_classifier.get_classifier()
        assert classifier.class_names == ["fresh", "rotten"]
        assert classifier.input_size == (IMAGE_SIZE, IMAGE_SIZE)

    def test_missing_artifact(self, reset_classifier, settings, tmp_path):
        settings.FRESHCHECK_MODEL_PATH = tmp_path / "nope.keras"
        with pytest.raises(ClassifierFailure):
            reset_classifier.get_classifier()


class TestClassifyImage:
    """Tests for the never-raising inference entry point."""

    def test_verdict(self, reset_classifier, png_bytes):
        reset_classifier._classifier = FakeClassifier("Moldy Banana", 0.99)
        states = []
        verdict = classify_image(png_bytes, on_state=states.append)

        assert verdict.is_rotten is True
        assert verdict.degraded is False
        assert InferenceState.CLASSIFYING in states

    def test_missing_model_gives_degraded_verdict(self, reset_classifier, settings, tmp_path, png_bytes):
        settings.FRESHCHECK_MODEL_PATH = tmp_path / "nope.keras"
        verdict = classify_image(png_bytes)

        assert verdict.degraded is True
        assert verdict.label == FALLBACK_LABEL
        assert verdict.score == 0.85


class TestClassifyView:
    """Tests for POST /classifier/classify/."""

    URL = "/classifier/classify/"

    def _upload(self, data, name="apple.png", content_type="image/png"):
        from django.core.files.uploadedfile import SimpleUploadedFile

        return SimpleUploadedFile(name, data, content_type=content_type)

    def test_success(self, client, reset_classifier, png_bytes):
        reset_classifier._classifier = FakeClassifier("Unidentified Object", 0.85)
        response = client.post(self.URL, {"image": self._upload(png_bytes)})

        assert response.status_code == 200
        assert response.json() == {
            "label": "Unidentified Object",
            "score": 0.85,
            "is_rotten": False,
            "degraded": False,
        }

    def test_classifier_error_still_200(self, client, reset_classifier, png_bytes):
        reset_classifier._classifier = FakeClassifier(error=RuntimeError("boom"))
        response = client.post(self.URL, {"image": self._upload(png_bytes)})

        assert response.status_code == 200
        body = response.json()
        assert body["label"] == FALLBACK_LABEL
        assert body["score"] == 0.85
        assert body["degraded"] is True
        assert isinstance(body["is_rotten"], bool)

    def test_no_file(self, client):
        response = client.post(self.URL, {})
        assert response.status_code == 400

    def test_bad_content_type(self, client, png_bytes):
        response = client.post(self.URL, {"image": self._upload(png_bytes, "a.txt", "text/plain")})
        assert response.status_code == 400
        assert "Unsupported" in response.json()["error"]

    def test_too_large(self, client, png_bytes, monkeypatch):
        from classifier.views import classification

        monkeypatch.setattr(classification, "MAX_UPLOAD_SIZE", 10)
        response = client.post(self.URL, {"image": self._upload(png_bytes)})
        assert response.status_code == 400
        assert "too large" in response.json()["error"]

    def test_get_not_allowed(self, client):
        assert client.get(self.URL).status_code == 405


class TestTrainingApi:
    """Tests for the training start / status endpoints."""

    def test_status_idle(self, client):
        response = client.get("/classifier/api/training/status/")
        assert response.status_code == 200
        assert response.json()["training_running"] is False

    def test_start_invalid_json(self, client):
        response = client.post(
            "/classifier/api/training/start/", data="{nope", content_type="application/json",
        )
        assert response.status_code == 400

    def test_start_unknown_field(self, client):
        response = client.post(
            "/classifier/api/training/start/",
            data={"dataset_path": "fruits", "colour": "red"},
            content_type="application/json",
        )
        assert response.status_code == 400

    def test_start_invalid_value(self, client):
        response = client.post(
            "/classifier/api/training/start/",
            data={"dataset_path": "fruits", "epochs": 0},
            content_type="application/json",
        )
        assert response.status_code == 400
        assert "epochs" in response.json()["error"]

    @pytest.mark.parametrize(
        "body",
        [
            {"dataset_path": "fruits", "validation_split": "0.2"},
            {"dataset_path": "fruits", "seed": "abc"},
            {"dataset_path": 5},
            {"dataset_path": "fruits", "class_names": "ab"},
        ],
    )
    def test_start_wrongly_typed_value(self, client, body):
        response = client.post(
            "/classifier/api/training/start/", data=body, content_type="application/json",
        )
        assert response.status_code == 400

    def test_start_conflict(self, client):
        from training import tasks

        assert tasks._training_lock.acquire(blocking=False)
        try:
            response = client.post(
                "/classifier/api/training/start/",
                data={"dataset_path": "fruits"},
                content_type="application/json",
            )
        finally:
            tasks._training_lock.release()
        assert response.status_code == 409

    def test_start(self, client, config, monkeypatch):
        from classifier.views import training_api

        started = []
        monkeypatch.setattr(training_api, "start_training", lambda cfg: started.append(cfg) or True)

        response = client.post(
            "/classifier/api/training/start/",
            data={"dataset_path": config.dataset_path, "epochs": 3},
            content_type="application/json",
        )
        assert response.status_code == 202
        assert response.json()["config"]["epochs"] == 3
        assert started[0].epochs == 3
