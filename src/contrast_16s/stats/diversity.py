# ===================================== IMPORTS ====================================== #

# Standard Library Imports
import logging
from typing import Dict, List, Optional, Tuple, Union

# Third-Party Imports
import numpy as np
import pandas as pd
from biom import Table
from skbio.diversity import alpha
from skbio.stats.distance import DistanceMatrix
from skbio.stats.ordination import pcoa as PCoA
from sklearn.metrics import pairwise_distances

# Local Imports
from contrast_16s import constants
from contrast_16s.errors import InputShapeError, StatisticalPreconditionError
from contrast_16s.utils.data import relative_abundance, table_to_df

# ========================== INITIALIZATION & CONFIGURATION ========================== #

logger = logging.getLogger(constants.LOGGER_NAME)

# ================================== CONSTANTS ======================================= #

SUPPORTED_ALPHA_METRICS = {
    'shannon', 'simpson', 'observed_features', 'pielou_evenness', 'berger_parker_dominance'
}

# =================================== ALPHA ========================================== #

def _as_counts(values: np.ndarray) -> np.ndarray:
    if np.allclose(values, np.round(values), atol=1e-5):
        return np.round(values).astype(int)
    return values


def alpha_diversity(
    table: Union[Dict, Table, pd.DataFrame],
    metrics: List[str] = constants.DEFAULT_ALPHA_METRICS
) -> pd.DataFrame:
    """
    Calculate alpha diversity metrics for each sample.

    Shannon entropy uses the natural logarithm. Samples with zero reads get
    NaN for every metric except ``observed_features``.

    Args:
        table:   Count table (samples x taxa).
        metrics: Alpha diversity metrics to compute.

    Returns:
        DataFrame with alpha diversity values (samples x metrics).

    Raises:
        ValueError: For unsupported metric names.
    """
    unknown = set(metrics) - SUPPORTED_ALPHA_METRICS
    if unknown:
        raise ValueError(
            f"Unsupported alpha diversity metrics {sorted(unknown)}; "
            f"choose from {sorted(SUPPORTED_ALPHA_METRICS)}"
        )

    df = table_to_df(table)
    results = pd.DataFrame(index=df.index)

    for metric in metrics:
        metric_values = []
        for sample in df.index:
            values = _as_counts(df.loc[sample].to_numpy(dtype=float))
            total = values.sum()
            non_zero = int((values > 0).sum())

            if metric == 'observed_features':
                metric_values.append(non_zero)
            elif total == 0:
                metric_values.append(np.nan)
            elif metric == 'shannon':
                metric_values.append(alpha.shannon(values, base=np.e))
            elif metric == 'simpson':
                metric_values.append(alpha.simpson(values))
            elif metric == 'pielou_evenness':
                shannon_val = alpha.shannon(values, base=np.e)
                metric_values.append(shannon_val / np.log(non_zero) if non_zero > 1 else 0.0)
            elif metric == 'berger_parker_dominance':
                metric_values.append(np.max(values) / total)
        results[metric] = metric_values

    empty = df.index[df.sum(axis=1) == 0]
    if len(empty):
        logger.warning(f"{len(empty)} samples have zero reads: {empty.tolist()[:10]}")
    return results


# ==================================== BETA ========================================== #

def distance_matrix(
    table: Union[Dict, Table, pd.DataFrame],
    metric: str = constants.DEFAULT_METRIC,
    normalize: bool = False
) -> DistanceMatrix:
    """Compute a sample × sample distance matrix.

    Args:
        table:     Count table (samples x taxa).
        metric:    Distance metric understood by scikit-learn/scipy
                   (default: Bray-Curtis).
        normalize: Convert rows to relative abundance first.

    Returns:
        scikit-bio DistanceMatrix with the table's sample IDs.

    Raises:
        StatisticalPreconditionError: Fewer than 2 samples.
        InputShapeError:              Empty samples under Bray-Curtis, or NaN/inf
                                      values in the table.
    """
    df = table_to_df(table)
    if len(df) < 2:
        raise StatisticalPreconditionError("At least 2 samples required for a distance matrix")
    if normalize:
        df = relative_abundance(df)

    data = df.to_numpy(dtype=float)
    if not np.isfinite(data).all():
        raise InputShapeError("Input data contains NaN or infinite values")
    if metric == 'braycurtis':
        empty = df.index[data.sum(axis=1) == 0]
        if len(empty):
            raise InputShapeError("Bray-Curtis is undefined for samples with zero reads", empty)

    dist_array = pairwise_distances(data, metric=metric)
    # Ensure exact symmetry and a hollow diagonal
    dist_array = (dist_array + dist_array.T) / 2
    np.fill_diagonal(dist_array, 0.0)

    return DistanceMatrix(dist_array, ids=df.index.astype(str).tolist())


def pcoa(
    dm: DistanceMatrix,
    n_dimensions: Optional[int] = constants.DEFAULT_N_PCOA
) -> Tuple[pd.DataFrame, pd.Series]:
    """Principal coordinates of a distance matrix.

    Args:
        dm:           Distance matrix.
        n_dimensions: Number of axes to keep (capped at n_samples - 1).

    Returns:
        (coordinates, proportion_explained): sample coordinates with columns
        ``PCo1..PCoN`` and the fraction of variance each axis explains.
    """
    if dm.shape[0] < 3:
        raise StatisticalPreconditionError("At least 3 samples required for PCoA")
    max_dims = dm.shape[0] - 1
    n_dimensions = min(n_dimensions, max_dims) if n_dimensions else max_dims

    result = PCoA(dm)
    comp_names = [f"PCo{i+1}" for i in range(n_dimensions)]

    coordinates = result.samples.iloc[:, :n_dimensions].copy()
    coordinates.columns = comp_names
    explained = pd.Series(
        np.asarray(result.proportion_explained)[:n_dimensions], index=comp_names
    )
    logger.debug(
        "PCoA variance explained: "
        + ", ".join(f"{k}={v:.1%}" for k, v in explained.items())
    )
    return coordinates, explained
