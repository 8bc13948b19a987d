"""
Final output assembly across forests.

Decision table
--------------
  return_list  collapse  multiclass  →  result
  -----------  --------  ----------     ------------------------------------
  True         False     any            dict  Forest_<i> → Series | DataFrame
  False        False     False          DataFrame, one column per forest
  False        False     True           DataFrame, F × C columns (forest-major)
  any          True      False          Series, row-wise mean over forests
  any          True      True           DataFrame Label_<c>, row-wise mean over
                                        forests of each class's columns

``collapse`` always wins over ``return_list``.
"""

from __future__ import annotations

from typing import Sequence, Union

import pandas as pd

from forest_aggregator.ml.frames import FrameOps, PandasFrameOps
from forest_aggregator.ml.naming import class_labels, collapsed_labels, forest_label
from forest_aggregator.models.ensemble import ClassMode

AggregatedOutput = Union[dict[str, Union[pd.Series, pd.DataFrame]], pd.DataFrame, pd.Series]


def assemble_output(
    outputs: Sequence[pd.Series | pd.DataFrame],
    class_mode: ClassMode,
    return_list: bool = True,
    collapse: bool = False,
    ops: FrameOps | None = None,
) -> AggregatedOutput:
    """Combine labelled per-forest predictions into the requested shape.

    Args:
        outputs:     One labelled container per forest, in forest order
                     (see ``naming.reshape_output()``).
        class_mode:  Shared binary/multiclass mode.
        return_list: Keep one entry per forest instead of one table.
        collapse:    Blend all forests into a single prediction.
        ops:         Column-binding helper (defaults to pandas).

    Returns:
        See the module decision table.
    """
    ops = ops or PandasFrameOps()
    n_forests = len(outputs)

    if return_list and not collapse:
        return {forest_label(i, n_forests): out for i, out in enumerate(outputs, start=1)}

    flat = ops.concat(outputs)
    if not collapse:
        return flat

    if not class_mode.is_multiclass:
        return flat.mean(axis=1)

    class_count = class_mode.class_count
    per_forest = [class_labels(i, n_forests, class_count) for i in range(1, n_forests + 1)]
    blended = {
        label: flat[[cols[c] for cols in per_forest]].mean(axis=1)
        for c, label in enumerate(collapsed_labels(class_count))
    }
    return pd.DataFrame(blended, index=flat.index)
