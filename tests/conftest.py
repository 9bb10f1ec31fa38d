import base64
from typing import List, Optional, Sequence

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from tokbox.database.connection import init_db
from tokbox.database.repositories.analysis_repository import AnalysisRepository
from tokbox.models.analysis import FrameExtractionResult
from tokbox.services.llm_providers import LLMProvider
from tokbox.services.mood_strategies import MoodStrategyRegistry
from tokbox.services.response_parsing import StrictJsonExtractor
from tokbox.utils.logger import analysis_id_var


@pytest.fixture
def session_factory(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'tokbox_test.db'}",
        connect_args={"check_same_thread": False},
    )
    init_db(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def repository(session_factory):
    return AnalysisRepository(session_factory=session_factory)


@pytest.fixture(scope="session")
def moods():
    return MoodStrategyRegistry.from_file()


class FakeProvider(LLMProvider):
    """Returns queued responses in order and records every call"""

    def __init__(self, responses: Sequence, strict: bool = False):
        super().__init__()
        self.responses = list(responses)
        self.calls: List[dict] = []
        if strict:
            self.json_extractor = StrictJsonExtractor()

    async def generate(self, prompt, model, max_tokens, image_urls=(), system=None):
        self.calls.append({
            "prompt": prompt,
            "model": model,
            "max_tokens": max_tokens,
            "image_urls": list(image_urls),
            "system": system,
            "analysis_id": analysis_id_var.get(),
        })
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def get_provider_name(self) -> str:
        return "fake"


class FakeStorage:
    def __init__(self, fail: bool = False):
        self.uploads = {}
        self.fail = fail

    def frame_key(self, analysis_id: str, index: int) -> str:
        return f"tokbox/{analysis_id}/frames/{index + 1:03d}.jpg"

    def upload_base64_image(self, base64_data: str, s3_key: str, content_type: str = "image/jpeg") -> str:
        if self.fail:
            raise RuntimeError("bucket unavailable")
        self.uploads[s3_key] = base64.b64decode(base64_data)
        return f"https://bucket.s3.us-east-2.amazonaws.com/{s3_key}"


class FakeFrameClient:
    def __init__(self, frames: Optional[List[str]] = None, duration: float = 12.5, error: Exception = None):
        self.frames = frames if frames is not None else [
            base64.b64encode(f"frame-{i}".encode()).decode() for i in range(6)
        ]
        self.duration = duration
        self.error = error
        self.calls = []

    async def extract(self, video_url=None, video_bytes=None, filename="video.mp4"):
        self.calls.append({"video_url": video_url, "video_bytes": video_bytes})
        if self.error is not None:
            raise self.error
        return FrameExtractionResult(
            frames=list(self.frames),
            duration=self.duration,
            num_frames=len(self.frames),
        )


@pytest.fixture
def fake_provider_cls():
    return FakeProvider


@pytest.fixture
def fake_storage_cls():
    return FakeStorage


@pytest.fixture
def fake_frame_client_cls():
    return FakeFrameClient
