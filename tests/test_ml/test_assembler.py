"""
Tests for forest_aggregator/ml/assembler.py — one test per decision-table row
plus the collapse-overrides-return_list rule.
"""

from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from forest_aggregator.ml.assembler import assemble_output
from forest_aggregator.ml.naming import reshape_output
from forest_aggregator.models.ensemble import BinaryMode, MulticlassMode

_INDEX = pd.Index(["a", "b", "c"])


def _binary_outputs(*columns: list[float]) -> list[pd.Series]:
    n = len(columns)
    return [
        reshape_output(np.array(col, dtype=float), i, n, BinaryMode(), _INDEX)
        for i, col in enumerate(columns, start=1)
    ]


def _multiclass_outputs(n_forests: int, class_count: int) -> list[pd.DataFrame]:
    # forest i, class c (1-based) → 10 * i + c on every row
    outs = []
    for i in range(1, n_forests + 1):
        container = np.tile(10.0 * i + np.arange(1, class_count + 1), (len(_INDEX), 1))
        outs.append(reshape_output(container, i, n_forests, MulticlassMode(class_count), _INDEX))
    return outs


def test_return_list_binary_gives_dict_of_series() -> None:
    result = assemble_output(_binary_outputs([1, 2, 3], [4, 5, 6]), BinaryMode(), return_list=True)
    assert isinstance(result, dict)
    assert list(result) == ["Forest_1", "Forest_2"]
    assert result["Forest_2"].tolist() == [4.0, 5.0, 6.0]


def test_return_list_multiclass_gives_dict_of_frames() -> None:
    result = assemble_output(_multiclass_outputs(2, 3), MulticlassMode(3), return_list=True)
    assert list(result) == ["Forest_1", "Forest_2"]
    assert result["Forest_1"].columns.tolist() == ["Forest_1_1", "Forest_1_2", "Forest_1_3"]


def test_flat_binary_table_has_one_column_per_forest() -> None:
    result = assemble_output(
        _binary_outputs([1, 2, 3], [4, 5, 6], [7, 8, 9]), BinaryMode(), return_list=False
    )
    assert isinstance(result, pd.DataFrame)
    assert result.columns.tolist() == ["Forest_1", "Forest_2", "Forest_3"]
    assert result.index.tolist() == ["a", "b", "c"]


def test_flat_multiclass_table_is_forest_major() -> None:
    result = assemble_output(_multiclass_outputs(3, 4), MulticlassMode(4), return_list=False)
    assert result.shape == (3, 12)
    assert result.columns[:5].tolist() == [
        "Forest_1_1", "Forest_1_2", "Forest_1_3", "Forest_1_4", "Forest_2_1",
    ]


@pytest.mark.parametrize("return_list", [True, False])
def test_collapse_binary_is_row_mean(return_list: bool) -> None:
    result = assemble_output(
        _binary_outputs([1, 2, 3], [3, 4, 5]), BinaryMode(),
        return_list=return_list, collapse=True,
    )
    assert isinstance(result, pd.Series)
    assert result.name is None
    assert result.tolist() == [2.0, 3.0, 4.0]
    assert result.index.tolist() == ["a", "b", "c"]


@pytest.mark.parametrize("return_list", [True, False])
def test_collapse_multiclass_averages_each_class(return_list: bool) -> None:
    result = assemble_output(
        _multiclass_outputs(2, 3), MulticlassMode(3),
        return_list=return_list, collapse=True,
    )
    assert isinstance(result, pd.DataFrame)
    assert result.columns.tolist() == ["Label_1", "Label_2", "Label_3"]
    # class c: mean(10 + c, 20 + c) = 15 + c
    assert result.iloc[0].tolist() == [16.0, 17.0, 18.0]


def test_collapse_single_forest_is_identity() -> None:
    outputs = _binary_outputs([0.1, 0.7, 0.3])
    result = assemble_output(outputs, BinaryMode(), return_list=False, collapse=True)
    np.testing.assert_array_equal(result.to_numpy(), outputs[0].to_numpy())
