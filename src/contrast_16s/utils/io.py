# ===================================== IMPORTS ====================================== #

# Standard Library Imports
import logging
from pathlib import Path
from typing import Dict, Optional, Tuple, Union

# Third-Party Imports
import pandas as pd
from biom import load_table as load_biom_table

# Local Imports
from contrast_16s import constants
from contrast_16s.errors import InputShapeError
from contrast_16s.utils.data import align_table_and_metadata, table_to_df

# ========================== INITIALIZATION & CONFIGURATION ========================== #

logger = logging.getLogger(constants.LOGGER_NAME)

DELIMITERS = {'.tsv': '\t', '.txt': '\t', '.csv': ','}
QIIME_TYPES_ROW = '#q2:types'

# ==================================== FUNCTIONS ===================================== #

def _delimiter(path: Path) -> str:
    try:
        return DELIMITERS[path.suffix.lower()]
    except KeyError:
        raise ValueError(
            f"Unsupported table format '{path.suffix}' for {path}. "
            f"Use one of {sorted(DELIMITERS) + ['.biom']}"
        ) from None


def _coerce_numeric(col: pd.Series) -> pd.Series:
    if pd.api.types.is_numeric_dtype(col):
        return col
    try:
        return pd.to_numeric(col)
    except (ValueError, TypeError):
        return col


def import_table(table_path: Union[str, Path]) -> pd.DataFrame:
    """Load a count table as a samples × taxa DataFrame.

    Delimited tables carry sample IDs in the first column and one column per
    taxon. BIOM tables (features × samples) are transposed.

    Args:
        table_path: Path to a .tsv, .txt, .csv or .biom file.

    Returns:
        Raw count table (not yet validated).

    Raises:
        FileNotFoundError: If the path doesn't exist.
    """
    table_path = Path(table_path)
    if not table_path.exists():
        raise FileNotFoundError(f"Count table not found: {table_path}")

    if table_path.suffix.lower() == '.biom':
        df = table_to_df(load_biom_table(str(table_path)))
    else:
        df = pd.read_csv(table_path, sep=_delimiter(table_path), index_col=0)
    logger.info(f"Loaded count table {table_path.name}: {df.shape[0]} samples × {df.shape[1]} taxa")
    return df


def import_metadata(
    metadata_path: Union[str, Path],
    sample_id_column: str = constants.DEFAULT_META_ID_COLUMN
) -> pd.DataFrame:
    """Load a sample metadata table indexed by sample ID.

    A QIIME 2 ``#q2:types`` directive row is dropped if present.

    Raises:
        FileNotFoundError: If the path doesn't exist.
        InputShapeError:   If the sample ID column is missing.
    """
    metadata_path = Path(metadata_path)
    if not metadata_path.exists():
        raise FileNotFoundError(f"Metadata file not found: {metadata_path}")

    df = pd.read_csv(metadata_path, sep=_delimiter(metadata_path), dtype={sample_id_column: str})
    if sample_id_column not in df.columns:
        raise InputShapeError(
            f"Sample ID column '{sample_id_column}' not found in {metadata_path.name}",
            df.columns
        )
    df = df[df[sample_id_column].astype(str) != QIIME_TYPES_ROW]
    df = df.set_index(sample_id_column)
    # Columns read next to the types row come in as strings
    df = df.apply(_coerce_numeric)
    logger.info(f"Loaded metadata {metadata_path.name}: {len(df)} samples")
    return df


def load_inputs(
    table_path: Union[str, Path],
    metadata_path: Union[str, Path],
    sample_id_column: str = constants.DEFAULT_META_ID_COLUMN,
    group_column: str = constants.DEFAULT_GROUP_COLUMN
) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """Load both input tables and validate their one-to-one sample join."""
    table = import_table(table_path)
    metadata = import_metadata(metadata_path, sample_id_column)
    return align_table_and_metadata(table, metadata, group_column)


def export_tables(
    tables: Dict[str, Optional[pd.DataFrame]],
    output_dir: Union[str, Path]
) -> Dict[str, Path]:
    """Write each non-empty DataFrame to ``<output_dir>/<name>.tsv``."""
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    written = {}
    for name, df in tables.items():
        if df is None:
            continue
        path = output_dir / f"{name}.tsv"
        df.to_csv(path, sep='\t', index=True)
        written[name] = path
        logger.debug(f"Wrote {path}")
    logger.info(f"Exported {len(written)} result tables to {output_dir}")
    return written
