from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from conftest import BUCKET, FakeCaptioner
from core.dependencies import get_pipeline
from core.exceptions import RenameFailed
from core.init_app import create_application
from services.pipeline_service import UploadPipeline


@pytest.fixture
def app():
    application = create_application()
    yield application
    application.dependency_overrides.clear()


def _client(app, pipeline):
    app.dependency_overrides[get_pipeline] = lambda: pipeline
    return TestClient(app)


def test_root(app):
    response = TestClient(app).get("/")
    assert response.status_code == 200
    assert response.json()["message"] == "Hello, World!"


def test_upload(app, store):
    client = _client(app, UploadPipeline(store, FakeCaptioner(default="a red bicycle")))

    response = client.post(
        "/upload",
        data={"name": "trip"},
        files={"file": ("IMG_001.jpg", b"jpeg-bytes", "image/jpeg")},
    )

    assert response.status_code == 200
    assert response.json() == {
        "url": f"https://{BUCKET}.s3.amazonaws.com/trip/a-red-bicycle.jpg",
        "caption": "a red bicycle",
    }


def test_upload_multiple(app, store):
    captioner = FakeCaptioner(captions={"cat": "a cat", "dog": "a dog"}, fail_for=["broken"])
    client = _client(app, UploadPipeline(store, captioner))

    response = client.post(
        "/upload_multiple",
        data={"name": "pets"},
        files=[
            ("files", ("cat.jpg", b"1", "image/jpeg")),
            ("files", ("broken.jpg", b"2", "image/jpeg")),
            ("files", ("dog.png", b"3", "image/png")),
        ],
    )

    assert response.status_code == 200
    body = response.json()
    assert [f["caption"] for f in body["files"]] == ["a cat", "a dog"]
    assert body["files"][1]["url"].endswith("/pets/a-dog.png")
    assert body["csv_url"] == f"https://{BUCKET}.s3.amazonaws.com/pets/results.csv"


@pytest.mark.parametrize(
    "path, files",
    [
        ("/upload", {"file": ("a.jpg", b"1", "image/jpeg")}),
        ("/upload_multiple", [("files", ("a.jpg", b"1", "image/jpeg"))]),
    ],
)
def test_missing_name_is_rejected_without_side_effects(app, path, files):
    store, captioner = MagicMock(), MagicMock()
    client = _client(app, UploadPipeline(store, captioner))

    response = client.post(path, files=files)

    assert response.status_code == 500
    assert response.json() == {"detail": "Upload processing failed", "code": "validation_failed"}
    store.put.assert_not_called()
    captioner.caption.assert_not_called()


def test_caption_failure_is_generic_500(app, store):
    client = _client(app, UploadPipeline(store, FakeCaptioner(fail_for=["IMG"])))

    response = client.post("/upload", data={"name": "trip"}, files={"file": ("IMG_1.jpg", b"1", "image/jpeg")})

    assert response.status_code == 500
    assert response.json() == {"detail": "Upload processing failed", "code": "caption_failed"}


def test_rename_failure_reports_partial_result(app):
    store = MagicMock()
    store.put.return_value = "https://b/trip/IMG_1.jpg"
    store.rename.side_effect = RenameFailed("Failed to delete trip/IMG_1.jpg")
    client = _client(app, UploadPipeline(store, FakeCaptioner(default="a cat")))

    response = client.post("/upload", data={"name": "trip"}, files={"file": ("IMG_1.jpg", b"1", "image/jpeg")})

    assert response.status_code == 500
    body = response.json()
    assert body["code"] == "rename_failed"
    assert body["partial"] == {"url": "https://b/trip/IMG_1.jpg", "caption": "a cat"}


def test_cors_allows_configured_origin(app):
    response = TestClient(app).options(
        "/upload",
        headers={"Origin": "http://localhost:3000", "Access-Control-Request-Method": "POST"},
    )
    assert response.headers["access-control-allow-origin"] == "http://localhost:3000"


def test_missing_file_is_generic_500(app):
    store, captioner = MagicMock(), MagicMock()
    client = _client(app, UploadPipeline(store, captioner))

    response = client.post("/upload", data={"name": "trip"})

    assert response.status_code == 500
    assert response.json()["code"] == "validation_failed"
    store.put.assert_not_called()
