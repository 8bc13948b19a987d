"""
Shared pytest fixtures for the forest aggregator test suite.

Provides:
  - ``FakeSubmodel`` / ``FakeEngine``: a deterministic stand-in for a boosted
    tree and its inference backend. A fake submodel predicts
        value + weight * (sum of the row's features) [+ base margin]
    and, for multiclass submodels, adds the 0-based class index per column.
    The engine records every call so tests can check what each submodel saw.
  - ``sample_data``: a small numeric DataFrame with a non-default index.
  - ``fake_submodel`` / ``engine_factory`` / ``constant_ensemble``: factory
    fixtures for building submodels, engines and constant-valued ensembles.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import numpy as np
import pandas as pd
import pytest

from forest_aggregator.models.ensemble import Ensemble, Forest


@dataclass(frozen=True)
class FakeSubmodel:
    value: float = 0.0
    weight: float = 0.0
    class_count: int | None = 2
    flat_output: bool = False
    fail: bool = False


@dataclass
class FakeCall:
    submodel: FakeSubmodel
    n_rows: int
    columns: tuple
    row_index: tuple
    base_margin: Any


class FakeEngine:
    """Deterministic ``InferenceEngine`` that records its calls."""

    def __init__(self) -> None:
        self.calls: list[FakeCall] = []

    def predict(self, submodel: FakeSubmodel, data: pd.DataFrame, base_margin=None) -> np.ndarray:
        self.calls.append(
            FakeCall(
                submodel=submodel,
                n_rows=len(data),
                columns=tuple(data.columns),
                row_index=tuple(data.index),
                base_margin=None if base_margin is None else np.array(base_margin),
            )
        )
        if submodel.fail:
            raise RuntimeError("feature dimension mismatch")

        out = submodel.value + submodel.weight * data.to_numpy(dtype=np.float64).sum(axis=1)
        if submodel.class_count is not None and submodel.class_count > 2:
            out = out[:, None] + np.arange(submodel.class_count)[None, :]
        if base_margin is not None:
            margin = np.asarray(base_margin, dtype=np.float64)
            if out.ndim == 1:
                margin = margin.reshape(len(out))
            elif margin.ndim == 1:
                margin = margin[:, None]
            out = out + margin
        if submodel.flat_output and out.ndim == 2:
            out = out.ravel()
        return out

    def num_classes(self, submodel: FakeSubmodel) -> int | None:
        return submodel.class_count


@pytest.fixture
def engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def sample_data() -> pd.DataFrame:
    """6 rows × 4 numeric columns, indexed r0..r5."""
    return pd.DataFrame(
        {
            "a": [1.0, 2.0, 3.0, 4.0, 5.0, 6.0],
            "b": [0.5, 0.5, 0.5, 0.5, 0.5, 0.5],
            "c": [10.0, 20.0, 30.0, 40.0, 50.0, 60.0],
            "d": [-1.0, 0.0, 1.0, 0.0, -1.0, 0.0],
        },
        index=[f"r{i}" for i in range(6)],
    )


def _constant_ensemble(
    values: list[list[float]],
    features: list | None = None,
    class_count: int | None = 2,
) -> Ensemble:
    """One forest per inner list; each submodel returns a constant value."""
    forests = [
        Forest(
            submodels=[FakeSubmodel(value=v, class_count=class_count) for v in forest_values],
            features=features if features is not None else [0, 1, 2, 3],
        )
        for forest_values in values
    ]
    return Ensemble(forests=forests)


@pytest.fixture
def fake_submodel() -> type[FakeSubmodel]:
    """The ``FakeSubmodel`` class, called by tests to build submodels."""
    return FakeSubmodel


@pytest.fixture
def engine_factory() -> type[FakeEngine]:
    """For tests that need more than one independent engine."""
    return FakeEngine


@pytest.fixture
def constant_ensemble():
    """Factory: ``constant_ensemble([[v11, v12], [v21]], features=None, class_count=2)``."""
    return _constant_ensemble
