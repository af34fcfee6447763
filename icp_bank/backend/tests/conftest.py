import pytest

from data_loader import ingest
from geography import get_profile


SAMPLE_HEADERS = ["Editor", "Sound Mixer", "state"]
SAMPLE_ROWS = [
    {"Editor": 10, "Sound Mixer": 5, "state": "CA"},
    {"Editor": 0, "Sound Mixer": 20, "state": "NY"},
]


@pytest.fixture
def us_profile():
    return get_profile("US")


@pytest.fixture
def sample_dataset():
    """Two US rows: CA (Editor 10, Sound Mixer 5) and NY (Editor 0, Sound Mixer 20)."""
    return ingest(SAMPLE_ROWS, SAMPLE_HEADERS, "sample.csv", dataset_id="sample")


@pytest.fixture
def atlantis_dataset():
    """Sample rows plus one row whose location no profile recognises."""
    rows = SAMPLE_ROWS + [{"Editor": 3, "Sound Mixer": 2, "state": "Atlantis"}]
    return ingest(rows, SAMPLE_HEADERS, "atlantis.csv", dataset_id="atlantis")
