# ===================================== IMPORTS ====================================== #

# Standard Library Imports
import logging
from typing import List, Optional, Tuple

# Third-Party Imports
import numpy as np
import pandas as pd
from scipy.stats import spearmanr

# Local Imports
from contrast_16s import constants
from contrast_16s.errors import InputShapeError, StatisticalPreconditionError
from contrast_16s.utils.progress import progress_iter

# ========================== INITIALIZATION & CONFIGURATION ========================== #

logger = logging.getLogger(constants.LOGGER_NAME)

# ==================================== HELPERS ======================================= #

def _pair_contributions(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Per-taxon Bray-Curtis contributions for every (a_i, b_j) sample pair.

    Returns an array of shape (n_a * n_b, n_taxa) whose rows sum to the
    Bray-Curtis dissimilarity of the corresponding pair.
    """
    diff = np.abs(a[:, None, :] - b[None, :, :])
    denom = a.sum(axis=1)[:, None] + b.sum(axis=1)[None, :]
    return (diff / denom[..., None]).reshape(-1, a.shape[1])


def _average_contributions(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    return _pair_contributions(a, b).mean(axis=0)


# ==================================== SIMPER ======================================== #

def simper(
    table: pd.DataFrame,
    groups: pd.Series,
    group_a,
    group_b,
    permutations: int = constants.DEFAULT_SIMPER_PERMUTATIONS,
    seed: Optional[int] = constants.DEFAULT_SEED
) -> pd.DataFrame:
    """Similarity percentages: which taxa drive the dissimilarity of two groups.

    For every pair of samples ``(i in A, j in B)`` the Bray-Curtis
    dissimilarity is split into per-taxon terms
    ``|x_ik - x_jk| / sum_k (x_ik + x_jk)`` which sum to the pair's
    dissimilarity. Terms are then summarised per taxon over all pairs.

    The ranking tracks raw abundance closely: abundant taxa vary more in
    absolute counts and so contribute more, regardless of whether they are
    characteristic of either group. The ``abundance_rank`` column is reported
    for checking this (see ``abundance_bias``).

    Args:
        table:        Count table (samples x taxa).
        groups:       Group label per sample, indexed by sample ID.
        group_a:      First group label.
        group_b:      Second group label.
        permutations: Label permutations for per-taxon p-values (0 = none).
        seed:         Random seed for the permutations.

    Returns:
        DataFrame indexed by taxon, sorted by ``average`` descending, with
        columns ``average``, ``sd``, ``ratio``, ``mean_a``, ``mean_b``,
        ``cumulative``, ``abundance_rank`` and, with permutations,
        ``p_value``.

    Raises:
        StatisticalPreconditionError: A group label has no samples, or the
                                      labels are equal.
        InputShapeError:              A sample in either group has zero reads.
    """
    if group_a == group_b:
        raise StatisticalPreconditionError("SIMPER needs two distinct groups")
    groups = groups.reindex(table.index)
    idx_a = table.index[groups == group_a]
    idx_b = table.index[groups == group_b]
    for label, idx in ((group_a, idx_a), (group_b, idx_b)):
        if len(idx) == 0:
            raise StatisticalPreconditionError(f"No samples in group '{label}'")

    df = table.loc[idx_a.append(idx_b)].astype(float)
    empty = df.index[df.sum(axis=1) == 0]
    if len(empty):
        raise InputShapeError("SIMPER is undefined for samples with zero reads", empty)

    a = df.loc[idx_a].to_numpy()
    b = df.loc[idx_b].to_numpy()
    contrib = _pair_contributions(a, b)

    average = contrib.mean(axis=0)
    sd = contrib.std(axis=0, ddof=1) if contrib.shape[0] > 1 else np.full(df.shape[1], np.nan)
    with np.errstate(divide='ignore', invalid='ignore'):
        ratio = np.where(sd > 0, average / sd, np.nan)

    result = pd.DataFrame({
        'average': average,
        'sd': sd,
        'ratio': ratio,
        'mean_a': a.mean(axis=0),
        'mean_b': b.mean(axis=0),
        'abundance_rank': df.mean(axis=0).rank(ascending=False, method='min').astype(int).to_numpy(),
    }, index=df.columns)
    result.index.name = 'taxon'

    if permutations > 0:
        result['p_value'] = _permutation_p_values(
            df.to_numpy(), len(idx_a), average, permutations, seed
        )

    result = result.sort_values('average', ascending=False, kind='mergesort')
    total = result['average'].sum()
    result.insert(
        5, 'cumulative',
        result['average'].cumsum() / total if total > 0 else 0.0
    )
    logger.debug(
        f"SIMPER {group_a} vs {group_b}: {len(idx_a)}×{len(idx_b)} pairs, "
        f"mean dissimilarity {total:.3f}"
    )
    return result


def _permutation_p_values(
    data: np.ndarray,
    n_a: int,
    observed: np.ndarray,
    permutations: int,
    seed: Optional[int]
) -> np.ndarray:
    rng = np.random.default_rng(seed)
    exceed = np.zeros(data.shape[1], dtype=int)
    for _ in progress_iter(range(permutations), "SIMPER permutations"):
        order = rng.permutation(data.shape[0])
        perm = _average_contributions(data[order[:n_a]], data[order[n_a:]])
        exceed += perm >= observed - 1e-12
    return (exceed + 1) / (permutations + 1)


def top_discriminant_taxa(simper_df: pd.DataFrame, n: int = constants.DEFAULT_SIMPER_TOP_N) -> List[str]:
    """First ``n`` taxa of a SIMPER table (fewer if the table is shorter)."""
    if n < 1:
        raise ValueError(f"n must be ≥ 1, got {n}")
    return simper_df.sort_values('average', ascending=False, kind='mergesort').index[:n].tolist()


def abundance_bias(simper_df: pd.DataFrame) -> Tuple[float, float]:
    """Spearman correlation between SIMPER contribution rank and abundance rank.

    Values near 1 mean the ranking mostly restates which taxa are abundant.
    """
    if len(simper_df) < 3:
        return np.nan, np.nan
    contribution_rank = simper_df['average'].rank(ascending=False, method='min')
    rho, p_val = spearmanr(contribution_rank, simper_df['abundance_rank'])
    return float(rho), float(p_val)
