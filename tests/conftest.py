from pathlib import Path

import pytest


DATA = Path(__file__).parent / "data"


@pytest.fixture
def sample_gpx_path() -> Path:
    return DATA / "sample.gpx"


@pytest.fixture
def sample_gpx_text(sample_gpx_path) -> str:
    return sample_gpx_path.read_text(encoding="utf-8")


def gpx(body: str, *, ns: str = "http://www.topografix.com/GPX/1/1") -> str:
    """Wrap elements in a <gpx> root."""
    xmlns = f' xmlns="{ns}"' if ns else ""
    return f'<?xml version="1.0" encoding="UTF-8"?>\n<gpx version="1.1"{xmlns}>{body}</gpx>'


@pytest.fixture
def make_gpx():
    return gpx
