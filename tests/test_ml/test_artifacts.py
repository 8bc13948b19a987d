"""
Tests for forest_aggregator/ml/artifacts.py.

What we test
------------
save_ensemble() / load_ensemble():
  - Round-trip keeps forests, submodels, features, class mode, metadata.
  - An ensemble without class mode loads with class_mode=None.
  - Saving an empty ensemble raises ValueError.
  - Loading a missing file raises FileNotFoundError; a foreign pickle
    raises ValueError.
  - The loaded ensemble predicts exactly like the one saved.
write_metadata():
  - Writes a JSON sidecar with structural keys.
"""

from __future__ import annotations

import json
from pathlib import Path

import joblib
import pandas as pd
import pytest

from forest_aggregator.ml.artifacts import (
    ARTIFACT_VERSION,
    load_ensemble,
    save_ensemble,
    write_metadata,
)
from forest_aggregator.ml.predictor import predict_ensemble
from forest_aggregator.models.ensemble import Ensemble, Forest, MulticlassMode


@pytest.fixture
def make_ensemble(fake_submodel):
    def _make(class_mode=None) -> Ensemble:
        return Ensemble(
            forests=[
                Forest([fake_submodel(value=1.0), fake_submodel(weight=0.5)], [0, 2]),
                Forest([fake_submodel(value=3.0)], ["b", "d", "a"]),
            ],
            class_mode=class_mode,
            metadata={"dataset": "unit-test"},
        )
    return _make


def test_round_trip(tmp_path: Path, make_ensemble, fake_submodel) -> None:
    path = tmp_path / "models" / "ensemble.pkl"
    save_ensemble(make_ensemble(MulticlassMode(3)), path)
    loaded = load_ensemble(path)

    assert loaded.n_forests == 2
    assert loaded.forests[0].n_submodels == 2
    assert loaded.forests[0].submodels[1] == fake_submodel(weight=0.5)
    assert loaded.forests[1].features == ("b", "d", "a")
    assert loaded.class_mode == MulticlassMode(3)
    assert loaded.metadata == {"dataset": "unit-test"}


def test_round_trip_without_class_mode(tmp_path: Path, make_ensemble) -> None:
    path = tmp_path / "ensemble.pkl"
    save_ensemble(make_ensemble(), path)
    assert load_ensemble(path).class_mode is None


def test_loaded_ensemble_predicts_identically(
    tmp_path: Path, sample_data: pd.DataFrame, make_ensemble, engine_factory
) -> None:
    original = make_ensemble()
    path = tmp_path / "ensemble.pkl"
    save_ensemble(original, path)
    before = predict_ensemble(
        original, sample_data, class_count=2, return_list=False, engine=engine_factory()
    )
    after = predict_ensemble(
        load_ensemble(path), sample_data, class_count=2, return_list=False, engine=engine_factory()
    )
    pd.testing.assert_frame_equal(before, after, check_exact=True)


def test_save_empty_ensemble_raises(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="no forests"):
        save_ensemble(Ensemble(forests=[]), tmp_path / "empty.pkl")


def test_load_missing_file(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_ensemble(tmp_path / "nope.pkl")


def test_load_foreign_pickle(tmp_path: Path) -> None:
    path = tmp_path / "other.pkl"
    joblib.dump({"booster": None}, path)
    with pytest.raises(ValueError, match="Not an ensemble artifact"):
        load_ensemble(path)


def test_write_metadata(tmp_path: Path, make_ensemble) -> None:
    meta_path = tmp_path / "ensemble.json"
    write_metadata(make_ensemble(MulticlassMode(4)), meta_path)
    meta = json.loads(meta_path.read_text())
    assert meta["artifact_version"] == ARTIFACT_VERSION
    assert meta["n_forests"] == 2
    assert meta["submodels_per_forest"] == [2, 1]
    assert meta["features_per_forest"] == [2, 3]
    assert meta["class_count"] == 4
    assert meta["multiclass"] is True
