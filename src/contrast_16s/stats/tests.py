# ===================================== IMPORTS ====================================== #

# Standard Library Imports
import logging
from typing import Dict, List, Optional, Sequence, Union

# Third-Party Imports
import numpy as np
import pandas as pd
from scipy.stats import kruskal
from skbio.stats.distance import DistanceMatrix, permanova

# Local Imports
from contrast_16s import constants
from contrast_16s.errors import StatisticalPreconditionError

# ========================== INITIALIZATION & CONFIGURATION ========================== #

logger = logging.getLogger(constants.LOGGER_NAME)

# ==================================== HELPERS ======================================= #

def _aligned(
    values: Union[pd.Series, Sequence[float]],
    groups: Union[pd.Series, Sequence]
) -> pd.DataFrame:
    """Pair values with group labels, dropping missing values."""
    if isinstance(values, pd.Series) and isinstance(groups, pd.Series):
        if set(values.index) != set(groups.index):
            raise StatisticalPreconditionError(
                "values and groups are indexed by different samples"
            )
        groups = groups.reindex(values.index)
    elif len(values) != len(groups):
        raise StatisticalPreconditionError(
            f"values ({len(values)}) and groups ({len(groups)}) differ in length"
        )
    df = pd.DataFrame({
        'value': np.asarray(values, dtype=float),
        'group': np.asarray(groups)
    })
    return df.dropna()


# ================================== UNIVARIATE ====================================== #

def compare_univariate(
    values: Union[pd.Series, Sequence[float]],
    groups: Union[pd.Series, Sequence]
) -> Dict[str, float]:
    """Kruskal-Wallis H-test of one variable across groups.

    Args:
        values: One value per sample.
        groups: Group label per sample, aligned with ``values`` (by index when
                both are Series, by position otherwise).

    Returns:
        Dict with ``statistic``, ``p_value``, ``n_groups`` and ``n_samples``.
        If every value is identical the test is degenerate and
        ``statistic = 0``, ``p_value = 1.0`` is returned.

    Raises:
        StatisticalPreconditionError: Misaligned inputs or fewer than two groups.
    """
    df = _aligned(values, groups)
    samples = [g['value'].to_numpy() for _, g in df.groupby('group', sort=True)]
    if len(samples) < 2:
        raise StatisticalPreconditionError(
            f"Kruskal-Wallis needs at least 2 groups, got {len(samples)}"
        )

    result = {'n_groups': len(samples), 'n_samples': len(df)}
    if df['value'].nunique() <= 1:
        result.update(statistic=0.0, p_value=1.0)
        return result

    h_stat, p_val = kruskal(*samples)
    result.update(statistic=float(h_stat), p_value=float(p_val))
    return result


def analyze_alpha_diversity(
    alpha_df: pd.DataFrame,
    groups: pd.Series
) -> pd.DataFrame:
    """Kruskal-Wallis test of every alpha diversity metric across groups.

    Returns:
        DataFrame indexed by metric with columns ``statistic``, ``p_value``,
        ``n_groups``, ``n_samples`` and the per-group medians.
    """
    results = []
    for metric in alpha_df.columns:
        values = pd.to_numeric(alpha_df[metric], errors='coerce')
        if values.isna().all():
            logger.warning(f"Alpha metric '{metric}' has no numeric values; skipped")
            continue
        res = compare_univariate(values, groups)
        medians = values.groupby(groups.reindex(values.index)).median()
        res.update({f"median_{label}": med for label, med in medians.items()})
        res['metric'] = metric
        results.append(res)
        logger.debug(
            f"Alpha {metric}: H={res['statistic']:.3f}, p={res['p_value']:.3g}"
        )
    if not results:
        return pd.DataFrame(columns=['statistic', 'p_value', 'n_groups', 'n_samples'])
    return pd.DataFrame(results).set_index('metric')


def compare_taxa(
    table: pd.DataFrame,
    groups: pd.Series,
    taxa: Optional[List[str]] = None
) -> pd.DataFrame:
    """Kruskal-Wallis test of each taxon's abundance across groups.

    Args:
        table:  Count table (samples x taxa).
        groups: Group label per sample.
        taxa:   Taxa to test (default: all columns), in output order.

    Returns:
        DataFrame indexed by taxon with ``statistic``, ``p_value``,
        ``n_groups`` and ``n_samples``.
    """
    taxa = list(table.columns) if taxa is None else list(taxa)
    missing = [t for t in taxa if t not in table.columns]
    if missing:
        raise KeyError(f"Taxa not in table: {missing[:10]}")

    rows = []
    for taxon in taxa:
        res = compare_univariate(table[taxon], groups)
        res['taxon'] = taxon
        rows.append(res)
    if not rows:
        return pd.DataFrame(columns=['statistic', 'p_value', 'n_groups', 'n_samples'])
    return pd.DataFrame(rows).set_index('taxon')


# ================================= MULTIVARIATE ===================================== #

def compare_multivariate(
    dm: DistanceMatrix,
    groups: Union[pd.Series, Sequence],
    permutations: int = constants.DEFAULT_PERMUTATIONS,
    seed: Optional[int] = constants.DEFAULT_SEED
) -> Dict[str, float]:
    """PERMANOVA test of group separation in a distance matrix.

    The p-value is ``(#{F_perm >= F_obs} + 1) / (permutations + 1)``, so the
    smallest reportable value is ``1 / (permutations + 1)``.

    Args:
        dm:           Sample distance matrix.
        groups:       Group label per sample. A Series is matched to ``dm.ids``
                      by index; a sequence must follow ``dm.ids`` order.
        permutations: Number of label permutations (at least 1).
        seed:         Random seed for the permutations.

    Returns:
        Dict with ``pseudo_F``, ``p_value``, ``permutations``, ``n_groups``
        and ``n_samples``.

    Raises:
        StatisticalPreconditionError: ``permutations < 1``, misaligned labels,
                                      fewer than two groups, or only singleton
                                      groups.
    """
    if permutations < 1:
        raise StatisticalPreconditionError(
            f"PERMANOVA needs at least 1 permutation, got {permutations}"
        )

    if isinstance(groups, pd.Series):
        groups = groups.copy()
        groups.index = groups.index.astype(str)
        missing = [i for i in dm.ids if i not in groups.index]
        if missing:
            raise StatisticalPreconditionError(
                f"No group label for samples {missing[:10]}"
            )
        grouping = groups.reindex(list(dm.ids))
    else:
        if len(groups) != len(dm.ids):
            raise StatisticalPreconditionError(
                f"groups ({len(groups)}) and distance matrix ({len(dm.ids)}) differ in size"
            )
        grouping = pd.Series(list(groups), index=list(dm.ids))

    sizes = grouping.value_counts()
    if len(sizes) < 2:
        raise StatisticalPreconditionError(
            f"PERMANOVA needs at least 2 groups, got {len(sizes)}"
        )
    if (sizes < 2).all():
        raise StatisticalPreconditionError(
            "PERMANOVA needs at least one group with more than one sample"
        )

    res = permanova(dm, grouping.to_numpy(), permutations=permutations, seed=seed)
    result = {
        'pseudo_F': float(res['test statistic']),
        'p_value': float(res['p-value']),
        'permutations': int(res['number of permutations']),
        'n_groups': int(res['number of groups']),
        'n_samples': int(res['sample size']),
    }
    logger.debug(
        f"PERMANOVA: F={result['pseudo_F']:.3f}, p={result['p_value']:.3g} "
        f"({permutations} permutations)"
    )
    return result
