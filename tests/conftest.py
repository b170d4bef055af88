from __future__ import annotations

import pytest

from sceneflow.config import Settings


@pytest.fixture()
def settings(tmp_path) -> Settings:
    s = Settings(_env_file=None)
    s.logging.log_dir = str(tmp_path / "logs")
    s.retry.backoff_min_s = 0.0
    s.retry.backoff_max_s = 0.0
    s.enrichment.timeout_s = 0.05
    return s
