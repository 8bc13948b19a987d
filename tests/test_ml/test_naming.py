"""
Tests for forest_aggregator/ml/naming.py.

Label widths are floor(log10(count)) + 1, indices are 1-based.
"""

from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from forest_aggregator.ml.naming import (
    class_labels,
    collapsed_labels,
    forest_label,
    pad_width,
    reshape_output,
)
from forest_aggregator.models.ensemble import BinaryMode, MulticlassMode


@pytest.mark.parametrize(
    "count, width",
    [(1, 1), (9, 1), (10, 2), (12, 2), (99, 2), (100, 3), (1000, 4)],
)
def test_pad_width(count: int, width: int) -> None:
    assert pad_width(count) == width


def test_pad_width_rejects_zero() -> None:
    with pytest.raises(ValueError):
        pad_width(0)


def test_twelve_forests_use_two_digits() -> None:
    labels = [forest_label(i, 12) for i in range(1, 13)]
    assert labels[0] == "Forest_01"
    assert labels[-1] == "Forest_12"
    assert labels == sorted(labels)


def test_five_forests_use_one_digit() -> None:
    assert [forest_label(i, 5) for i in range(1, 6)] == [
        "Forest_1", "Forest_2", "Forest_3", "Forest_4", "Forest_5",
    ]


def test_class_labels_pad_each_index_independently() -> None:
    assert class_labels(3, 12, 3) == ["Forest_03_1", "Forest_03_2", "Forest_03_3"]
    assert class_labels(2, 5, 10)[0] == "Forest_2_01"
    assert class_labels(2, 5, 10)[-1] == "Forest_2_10"


def test_collapsed_labels() -> None:
    assert collapsed_labels(3) == ["Label_1", "Label_2", "Label_3"]
    assert collapsed_labels(11)[0] == "Label_01"


def test_reshape_binary_container_to_named_series() -> None:
    idx = pd.Index(["x", "y"])
    out = reshape_output(np.array([0.1, 0.9]), 2, 10, BinaryMode(), idx)
    assert isinstance(out, pd.Series)
    assert out.name == "Forest_02"
    assert out.index.tolist() == ["x", "y"]


def test_reshape_multiclass_container_to_frame() -> None:
    idx = pd.RangeIndex(2)
    out = reshape_output(np.zeros((2, 3)), 1, 1, MulticlassMode(3), idx)
    assert isinstance(out, pd.DataFrame)
    assert out.columns.tolist() == ["Forest_1_1", "Forest_1_2", "Forest_1_3"]
