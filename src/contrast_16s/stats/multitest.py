# ===================================== IMPORTS ====================================== #

# Standard Library Imports
from typing import Sequence, Union

# Third-Party Imports
import numpy as np
import pandas as pd
from statsmodels.stats.multitest import multipletests

# ==================================== FUNCTIONS ===================================== #

def adjust(
    p_values: Union[pd.Series, Sequence[float], np.ndarray]
) -> Union[pd.Series, np.ndarray]:
    """Benjamini-Hochberg FDR adjustment of one family of p-values.

    Adjusted values keep the input's length and order; a Series keeps its
    index. Each family is adjusted on its own, so call this once per family.

    Args:
        p_values: Raw p-values in ``[0, 1]``.

    Returns:
        Adjusted p-values, as a Series when given a Series.

    Raises:
        ValueError: If any p-value is NaN or outside ``[0, 1]``.
    """
    is_series = isinstance(p_values, pd.Series)
    values = np.asarray(p_values, dtype=float)

    if values.size == 0:
        return p_values.astype(float).copy() if is_series else values
    if np.isnan(values).any():
        raise ValueError("p-values contain NaN")
    if ((values < 0) | (values > 1)).any():
        raise ValueError("p-values must lie in [0, 1]")

    _, p_adj, _, _ = multipletests(values, method='fdr_bh')
    p_adj = np.clip(p_adj, 0.0, 1.0)
    if is_series:
        return pd.Series(p_adj, index=p_values.index, name=p_values.name)
    return p_adj
