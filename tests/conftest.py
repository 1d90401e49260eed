import base64
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from sprite_lab.descriptions import load_template  # noqa: E402

PNG_BYTES = b"\x89PNG\r\n\x1a\nfake-sprite-bytes"


class FakeClock:
    def __init__(self, now_ms: int = 1_700_000_000_000):
        self.now_ms = now_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, ms: int) -> None:
        self.now_ms += ms


class FakeBackend:
    """Records requests and replays queued text/image answers."""

    def __init__(self, texts=None, images=None):
        self.texts = list(texts or [])
        self.images = list(images or [])
        self.text_calls = []
        self.image_calls = []
        self.edit_calls = []

    @staticmethod
    def _next(queue):
        outcome = queue.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def generate_text(
        self, prompt, image_base64=None, system_message=None, detail="high", mime_type="image/png"
    ):
        self.text_calls.append(
            {
                "prompt": prompt,
                "image_base64": image_base64,
                "system_message": system_message,
                "detail": detail,
                "mime_type": mime_type,
            }
        )
        return self._next(self.texts)

    def generate_image(self, prompt, image_base64, mime_type="image/png"):
        self.image_calls.append({"prompt": prompt, "image_base64": image_base64, "mime_type": mime_type})
        return self._next(self.images)

    def edit_image(self, prompt, image_bytes, filename, mime_type, size="1024x1024"):
        self.edit_calls.append(
            {
                "prompt": prompt,
                "image_bytes": image_bytes,
                "filename": filename,
                "mime_type": mime_type,
                "size": size,
            }
        )
        return self._next(self.images)


def _fill(node, prefix):
    if isinstance(node, dict):
        return {key: _fill(child, f"{prefix}{key}.") for key, child in node.items()}
    if isinstance(node, list):
        return [f"{prefix.rstrip('.')}-item"]
    if isinstance(node, bool):
        return node
    return f"{prefix.rstrip('.')}-value"


@pytest.fixture
def template():
    return load_template()


@pytest.fixture
def complete_description(template):
    """A fully populated, well-typed description derived from the template."""
    description = _fill(template, "")
    description["character_id"] = "knight_01"
    description["pose"]["overall_pose"] = "standing"
    return description


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def fake_backend():
    return FakeBackend()


@pytest.fixture
def make_backend():
    return FakeBackend


@pytest.fixture
def sprite_path(tmp_path):
    path = tmp_path / "sprite.png"
    path.write_bytes(PNG_BYTES)
    return path


@pytest.fixture
def sprite_base64():
    return base64.b64encode(PNG_BYTES).decode("ascii")


@pytest.fixture
def cache_root(tmp_path):
    return tmp_path / "cache-root"
