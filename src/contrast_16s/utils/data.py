# ===================================== IMPORTS ====================================== #

# Standard Library Imports
import logging
from typing import Dict, Tuple, Union

# Third-Party Imports
import numpy as np
import pandas as pd
from biom import Table

# Local Imports
from contrast_16s import constants
from contrast_16s.errors import DegenerateFilterError, InputShapeError

# ========================== INITIALIZATION & CONFIGURATION ========================== #

logger = logging.getLogger(constants.LOGGER_NAME)

# ================================ TABLE CONVERSION ================================== #

def table_to_df(table: Union[Dict, Table, pd.DataFrame]) -> pd.DataFrame:
    """Convert various table formats to samples × features DataFrame.

    Handles:
    - Pandas DataFrame (returns unchanged)
    - BIOM Table (transposes to samples × features)
    - Dictionary of {feature: {sample: count}} (converts to DataFrame)

    Args:
        table: Input table in various formats.

    Returns:
        DataFrame in samples × features orientation.

    Raises:
        TypeError: For unsupported input types
    """
    if isinstance(table, pd.DataFrame):  # samples × features
        return table
    if isinstance(table, Table):         # features × samples
        return table.to_dataframe(dense=True).T
    if isinstance(table, dict):          # samples × features
        return pd.DataFrame(table)
    raise TypeError("Input must be BIOM Table, dict, or DataFrame.")


def _normalize_ids(ids: pd.Index) -> pd.Index:
    return pd.Index(ids.astype(str).str.strip())


# ================================ TABLE VALIDATION ================================== #

def validate_table(table: Union[Dict, Table, pd.DataFrame]) -> pd.DataFrame:
    """Check that a count table is usable and return it as a numeric DataFrame.

    Args:
        table: Count table (samples × taxa).

    Returns:
        Copy of the table with string sample/taxon IDs and numeric cells.

    Raises:
        InputShapeError: Empty table, duplicated IDs, non-numeric, missing or
                         negative cells.
    """
    df = table_to_df(table).copy()
    if df.empty or df.shape[0] == 0 or df.shape[1] == 0:
        raise InputShapeError(f"Count table is empty (shape {df.shape})")

    df.index = _normalize_ids(df.index)
    df.columns = _normalize_ids(df.columns)

    dup_samples = df.index[df.index.duplicated()].unique()
    if len(dup_samples):
        raise InputShapeError("Duplicate sample IDs in count table", dup_samples)
    dup_taxa = df.columns[df.columns.duplicated()].unique()
    if len(dup_taxa):
        raise InputShapeError("Duplicate taxon IDs in count table", dup_taxa)

    numeric = df.apply(pd.to_numeric, errors='coerce')
    bad_cells = numeric.isna() & df.notna()
    if bad_cells.values.any():
        raise InputShapeError(
            "Non-numeric cells in count table columns",
            df.columns[bad_cells.any(axis=0)]
        )
    if numeric.isna().values.any():
        raise InputShapeError(
            "Missing cells in count table for samples",
            numeric.index[numeric.isna().any(axis=1)]
        )
    negative = numeric < 0
    if negative.values.any():
        raise InputShapeError(
            "Negative counts in count table for samples",
            numeric.index[negative.any(axis=1)]
        )
    return numeric


def align_table_and_metadata(
    table: pd.DataFrame,
    metadata: pd.DataFrame,
    group_column: str = constants.DEFAULT_GROUP_COLUMN
) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """Validate the one-to-one join between count table and metadata.

    Every sample in the table must have exactly one metadata record and vice
    versa; nothing is silently dropped.

    Args:
        table:        Count table (samples × taxa).
        metadata:     Metadata indexed by sample ID.
        group_column: Metadata column holding the group labels.

    Returns:
        (table, metadata) with metadata reordered to the table's sample order.

    Raises:
        InputShapeError: On duplicated metadata IDs, samples present on only one
                         side, or a missing/incomplete group column.
    """
    table = validate_table(table)
    metadata = metadata.copy()
    metadata.index = _normalize_ids(metadata.index)

    dup_meta = metadata.index[metadata.index.duplicated()].unique()
    if len(dup_meta):
        raise InputShapeError("Duplicate sample IDs in metadata", dup_meta)

    missing_meta = table.index.difference(metadata.index)
    if len(missing_meta):
        raise InputShapeError(
            "Samples in count table without a metadata record", missing_meta
        )
    missing_table = metadata.index.difference(table.index)
    if len(missing_table):
        raise InputShapeError(
            "Samples in metadata without a count table row", missing_table
        )

    if group_column not in metadata.columns:
        raise InputShapeError(f"Group column '{group_column}' not found in metadata")
    unlabelled = metadata.index[metadata[group_column].isna()]
    if len(unlabelled):
        raise InputShapeError(
            f"Samples missing a '{group_column}' value", unlabelled
        )

    metadata = metadata.loc[table.index]
    logger.debug(
        f"Aligned {table.shape[0]} samples × {table.shape[1]} taxa with metadata"
    )
    return table, metadata


# ================================ TABLE FILTERING =================================== #

def filter_abundance(
    table: pd.DataFrame,
    threshold: float = constants.DEFAULT_MIN_REL_ABUNDANCE
) -> pd.DataFrame:
    """Keep taxa whose total count exceeds ``threshold`` of the grand total.

    Column ``j`` is kept iff ``sum(column_j) > threshold * sum(table)``. A
    threshold of zero returns the table unchanged. Filtering is idempotent
    because removing columns can only lower the grand total.

    Args:
        table:     Count table (samples × taxa).
        threshold: Fraction in ``[0, 1)``.

    Returns:
        New DataFrame restricted to the retained taxa. May be empty; use
        ``require_taxa`` to turn that into an error.

    Raises:
        InputShapeError: If the table is empty.
        ValueError:      If the threshold is outside ``[0, 1)``.
    """
    df = table_to_df(table)
    if df.empty or df.shape[1] == 0:
        raise InputShapeError(f"Cannot filter an empty table (shape {df.shape})")
    if not 0 <= threshold < 1:
        raise ValueError(f"threshold must be in [0, 1), got {threshold}")
    if threshold == 0:
        return df.copy()

    total = df.values.sum()
    keep = df.sum(axis=0) > total * threshold
    filtered = df.loc[:, keep].copy()

    if filtered.shape[1] == 0:
        logger.warning(
            f"Abundance threshold {threshold} removed all {df.shape[1]} taxa"
        )
    else:
        logger.debug(
            f"Abundance filter ({threshold}): {df.shape[1]} → {filtered.shape[1]} taxa"
        )
    return filtered


def require_taxa(
    table: pd.DataFrame,
    minimum: int = 1,
    context: str = "filtered table"
) -> pd.DataFrame:
    """Raise ``DegenerateFilterError`` when fewer than ``minimum`` taxa remain."""
    n_taxa = table.shape[1]
    if n_taxa < minimum:
        raise DegenerateFilterError(
            f"{context} has {n_taxa} taxa; at least {minimum} required"
        )
    return table


# ========================== TABLE NORMALIZATION & DEPTH ============================= #

def relative_abundance(table: pd.DataFrame) -> pd.DataFrame:
    """Scale each sample (row) to proportions; empty samples stay all zero."""
    df = table_to_df(table).astype(float)
    totals = df.sum(axis=1)
    return df.div(totals.where(totals > 0, np.nan), axis=0).fillna(0.0)


def check_sequencing_depth(
    table: pd.DataFrame,
    tolerance: float = constants.DEFAULT_DEPTH_TOLERANCE
) -> bool:
    """Report whether sample depths are approximately equal.

    Depth is the row sum. A sample is within tolerance when
    ``|depth - median| <= tolerance * median``. Out-of-band samples are logged
    as a warning; the table is not modified.

    Returns:
        True when every sample is within the band.
    """
    if tolerance < 0:
        raise ValueError(f"tolerance must be ≥ 0, got {tolerance}")
    depths = table_to_df(table).sum(axis=1)
    median = float(depths.median())
    if median == 0:
        logger.warning("Median sequencing depth is zero")
        return False

    deviation = (depths - median).abs() / median
    outside = deviation[deviation > tolerance]
    if len(outside):
        logger.warning(
            f"{len(outside)} samples deviate more than {tolerance:.0%} from the "
            f"median depth ({median:.0f}): {outside.index.tolist()[:10]}"
        )
        return False
    logger.debug(f"All sample depths within {tolerance:.0%} of {median:.0f}")
    return True


# ================================== GROUPING ======================================== #

def subset_group(
    table: pd.DataFrame,
    groups: pd.Series,
    label
) -> pd.DataFrame:
    """Return the rows of ``table`` whose group label equals ``label``."""
    samples = groups.index[groups == label]
    return table.loc[table.index.intersection(samples)]
