import json

import pytest
from botocore.exceptions import ClientError
from fastapi.testclient import TestClient
from sqlalchemy import create_engine

import tokbox.database.connection as db_connection
from tokbox.main import app
from tokbox.models.analysis import QuotaDecision, PlanTier
from tokbox.routes.analyze import get_video_analysis_service
from tokbox.routes.history import DEFAULT_HISTORY_LIMIT, get_analysis_repository, history_limit
from tokbox.routes.usage import get_usage_gateway
from tokbox.services.errors import FrameExtractionUnavailable, UsageLimitReached
from tokbox.services.s3_storage_service import S3StorageService, get_s3_storage
from tokbox.services.usage_gateway import UsageGateway

SIGNED_IN = {"X-User-Id": "user_1", "X-User-Email": "one@example.com", "X-User-Plan": "free"}


class FakeAnalysisService:
    def __init__(self, error=None):
        self.error = error
        self.calls = []

    async def analyze(self, identity, video_url=None, video_bytes=None, mood=None):
        self.calls.append({"identity": identity, "video_url": video_url, "video_bytes": video_bytes, "mood": mood})
        if self.error is not None:
            raise self.error
        return {"id": "tokbox_1_abcdefghi", "grade": "B", "usage": {"plan": identity.plan.value}}


class FakeS3Client:
    def __init__(self, bucket_reachable=True):
        self.bucket_reachable = bucket_reachable

    def generate_presigned_url(self, operation, Params, ExpiresIn):
        return f"https://signed.example/{Params['Key']}"

    def list_objects_v2(self, Bucket, MaxKeys):
        if not self.bucket_reachable:
            raise ClientError({"Error": {"Code": "NoSuchBucket", "Message": "missing"}}, "ListObjectsV2")
        return {"KeyCount": 0}


@pytest.fixture
def client(repository):
    app.dependency_overrides[get_usage_gateway] = lambda: UsageGateway(repository=repository)
    app.dependency_overrides[get_analysis_repository] = lambda: repository
    app.dependency_overrides[get_s3_storage] = lambda: S3StorageService(
        s3_client=FakeS3Client(), bucket_name="candyshop-1", region="us-east-2", key_prefix="tokbox"
    )
    yield TestClient(app)
    app.dependency_overrides.clear()


def use_service(service):
    app.dependency_overrides[get_video_analysis_service] = lambda: service
    return service


def test_upload_url(client):
    response = client.post("/api/get-upload-url", json={"filename": "my clip.mp4"})
    assert response.status_code == 200
    body = response.json()
    assert body["s3Key"].startswith("tokbox/videos/")
    assert body["s3Key"].endswith("_my_clip.mp4")
    assert body["uploadUrl"].startswith("https://signed.example/")
    assert body["videoUrl"].startswith("https://candyshop-1.s3.us-east-2.amazonaws.com/tokbox/videos/")


def test_upload_url_requires_filename(client):
    response = client.post("/api/get-upload-url", json={"contentType": "video/mp4"})
    assert response.status_code == 400
    assert response.json() == {"error": "Filename required"}


def test_analyze_json(client):
    service = use_service(FakeAnalysisService())
    response = client.post(
        "/api/analyze",
        json={"videoUrl": "https://bucket/v.mp4", "mood": "funny"},
        headers={**SIGNED_IN, "X-Forwarded-For": "198.51.100.1"},
    )
    assert response.status_code == 200
    assert response.json()["grade"] == "B"

    call = service.calls[0]
    assert call["video_url"] == "https://bucket/v.mp4"
    assert call["mood"] == "funny"
    assert call["identity"].user_id == "user_1"
    assert call["identity"].plan == PlanTier.FREE
    assert call["identity"].ip_address == "198.51.100.1"


def test_analyze_multipart(client):
    service = use_service(FakeAnalysisService())
    response = client.post(
        "/api/analyze",
        files={"video": ("clip.mp4", b"fake-video-bytes", "video/mp4")},
        data={"mood": "asmr"},
    )
    assert response.status_code == 200
    assert service.calls[0]["video_bytes"] == b"fake-video-bytes"
    assert service.calls[0]["mood"] == "asmr"
    assert service.calls[0]["identity"].plan == PlanTier.ANONYMOUS


def test_analyze_without_video(client):
    service = use_service(FakeAnalysisService())
    assert client.post("/api/analyze", json={"mood": "funny"}).status_code == 400
    assert client.post("/api/analyze", data={"mood": "funny"}, files={"other": ("x", b"x")}).status_code == 400
    assert service.calls == []


def test_analyze_limit_reached(client):
    decision = QuotaDecision(
        allowed=False, plan=PlanTier.ANONYMOUS, used=1, limit=1,
        requires_sign_up=True, message="Sign up for free to analyze another video.",
    )
    use_service(FakeAnalysisService(error=UsageLimitReached(decision, decision.usage_counts())))

    response = client.post("/api/analyze", json={"videoUrl": "https://bucket/v.mp4"})
    assert response.status_code == 403
    body = response.json()
    assert body["error"] == "limit_reached"
    assert body["requiresSignUp"] is True
    assert "upgradeRequired" not in body
    assert body["currentPlan"] == "anonymous"
    assert body["usage"]["analysesUsed"] == 1


def test_analyze_frame_service_down(client):
    use_service(FakeAnalysisService(error=FrameExtractionUnavailable()))
    response = client.post("/api/analyze", json={"videoUrl": "https://bucket/v.mp4"})
    assert response.status_code == 503
    assert "hint" in response.json()


def test_analyze_unexpected_error_does_not_leak_details(client):
    use_service(FakeAnalysisService(error=RuntimeError("secret connection string")))
    response = client.post("/api/analyze", json={"videoUrl": "https://bucket/v.mp4"})
    assert response.status_code == 500
    assert response.json() == {"error": "Analysis failed"}


def test_check_usage(client, repository):
    response = client.get("/api/check-usage", headers=SIGNED_IN)
    assert response.json()["limitReached"] is False

    repository.track_analysis(mood="none", model_used="premium", user_id="user_1")
    body = client.get("/api/check-usage", headers=SIGNED_IN).json()
    assert body["limitReached"] is True
    assert body["plan"] == "free"
    assert body["email"] == "one@example.com"
    assert body["analysesUsed"] == 1
    assert body["analysesLimit"] == 1


def test_history_requires_sign_in(client):
    response = client.get("/api/history")
    assert response.status_code == 401


def test_history_list_and_detail(client, repository):
    stored = {"id": "tokbox_1_abcdefghi", "grade": "A-"}
    first = repository.track_analysis(mood="pov", model_used="premium", user_id="user_1", grade="A-",
                                      viral_score=9.1, results_json=json.dumps(stored))
    repository.track_analysis(mood="none", model_used="premium", user_id="user_1", grade="C")
    other = repository.track_analysis(mood="pov", model_used="premium", user_id="user_2", grade="B")

    history = client.get("/api/history", headers=SIGNED_IN).json()["history"]
    assert len(history) == 2
    assert {entry["hasResults"] for entry in history} == {True, False}
    assert set(history[0]) == {"id", "mood", "grade", "viralScore", "createdAt", "hasResults"}

    assert len(client.get("/api/history?limit=1", headers=SIGNED_IN).json()["history"]) == 1

    detail = client.get(f"/api/history?id={first}", headers=SIGNED_IN).json()["analysis"]
    assert detail["results"] == stored
    assert detail["viralScore"] == 9.1

    assert client.get(f"/api/history?id={other}", headers=SIGNED_IN).status_code == 404


def test_history_limit_bounds():
    assert history_limit(None) == DEFAULT_HISTORY_LIMIT
    assert history_limit(0) == DEFAULT_HISTORY_LIMIT
    assert history_limit(-5) == 1
    assert history_limit(7) == 7


def test_history_limit_is_at_least_one(client, repository):
    for grade in ("A", "B", "C"):
        repository.track_analysis(mood="none", model_used="premium", user_id="user_1", grade=grade)

    assert len(client.get("/api/history?limit=-1", headers=SIGNED_IN).json()["history"]) == 1
    assert len(client.get("/api/history?limit=0", headers=SIGNED_IN).json()["history"]) == 3


@pytest.fixture
def health_engine(tmp_path, monkeypatch):
    engine = create_engine(f"sqlite:///{tmp_path / 'health.db'}")
    monkeypatch.setattr(db_connection, "engine", engine)
    yield engine
    engine.dispose()


def test_health_reports_database_and_s3(client, health_engine):
    body = client.get("/health").json()
    assert body["status"] == "healthy"
    assert body["services"]["database"] == "connected"
    assert body["services"]["s3"] == "connected"
    assert body["services"]["moods"] > 0


def test_health_degraded_when_bucket_unreachable(client, health_engine):
    app.dependency_overrides[get_s3_storage] = lambda: S3StorageService(
        s3_client=FakeS3Client(bucket_reachable=False), bucket_name="candyshop-1", region="us-east-2"
    )
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "degraded"
    assert response.json()["services"]["s3"] == "unavailable"
