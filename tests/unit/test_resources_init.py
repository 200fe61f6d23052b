from __future__ import annotations

import json

from propdx.resources import read_resource_text


def test_packaged_catalog_is_readable_json() -> None:
    data = json.loads(read_resource_text("catalog.json"))

    assert "featureTests" in data
    assert "diagnosisFeatures" in data
