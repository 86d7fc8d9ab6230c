from pathlib import Path

# ==================================================================================== #
# PROGRESS BAR
# ==================================================================================== #

# Total character width of the progress bar text
DEFAULT_PROGRESS_TEXT_N: int = 50
# Color of the progress bar description text
DEFAULT_DESCRIPTION_STYLE: str = "white"
# Width of the progress bar
DEFAULT_BAR_WIDTH: int = 40
# Color of the filled/complete portion of the progress bar
DEFAULT_BAR_COLUMN_COMPLETE_STYLE: str = "honeydew2"
# Color used when the progress bar is finished
DEFAULT_FINISHED_STYLE: str = "dark_cyan"
# Color of the "X of Y complete" text (e.g., "42 of 65")
DEFAULT_M_OF_N_COMPLETE_STYLE: str = "honeydew2"

# ==================================================================================== #
# SETTINGS
# ==================================================================================== #
# Go up two levels
DEFAULT_CONFIG_PATH = Path(__file__).resolve().parents[2] / "references" / "config.yaml"
LOGGER_NAME = "contrast_16s"

# ==================================================================================== #
# METADATA
# ==================================================================================== #
DEFAULT_META_ID_COLUMN = '#sampleid'
DEFAULT_GROUP_COLUMN = 'group'

# ==================================================================================== #
# FILTERING
# ==================================================================================== #
# Fraction of the grand total a taxon's column sum must exceed
DEFAULT_MIN_REL_ABUNDANCE: float = 0.0001
# Stricter, group-local threshold applied before correlation networks
DEFAULT_NETWORK_MIN_REL_ABUNDANCE: float = 0.001
# Relative band around the median sequencing depth treated as "equal depth"
DEFAULT_DEPTH_TOLERANCE: float = 0.1

# ==================================================================================== #
# DIVERSITY
# ==================================================================================== #
DEFAULT_ALPHA_METRICS = ['shannon', 'simpson', 'observed_features']
DEFAULT_METRIC = 'braycurtis'
DEFAULT_N_PCOA = 3
DEFAULT_PERMUTATIONS = 999
DEFAULT_SEED = 0

# ==================================================================================== #
# SIMPER
# ==================================================================================== #
DEFAULT_SIMPER_TOP_N = 10
DEFAULT_SIMPER_PERMUTATIONS = 0

# ==================================================================================== #
# NETWORKS
# ==================================================================================== #
DEFAULT_P_THRESHOLD: float = 0.001
DEFAULT_R_THRESHOLD: float = 0.7
DEFAULT_TOP_DEGREE_N = 10

# ==================================================================================== #
# DEFAULT CONFIGURATION
# ==================================================================================== #
DEFAULT_CONFIG = {
    'project': {
        'name': 'contrast_16s',
        'output_dir': None,
        'log_dir': None,
    },
    'data': {
        'table': None,
        'metadata': None,
        'sample_id_column': DEFAULT_META_ID_COLUMN,
        'group_column': DEFAULT_GROUP_COLUMN,
        'group_values': None,
    },
    'filter': {
        'min_rel_abundance': DEFAULT_MIN_REL_ABUNDANCE,
        'depth_tolerance': DEFAULT_DEPTH_TOLERANCE,
    },
    'alpha': {
        'metrics': DEFAULT_ALPHA_METRICS,
        'metadata_columns': [],
    },
    'beta': {
        'metric': DEFAULT_METRIC,
        'normalize': False,
        'permutations': DEFAULT_PERMUTATIONS,
        'seed': DEFAULT_SEED,
        'n_dimensions': DEFAULT_N_PCOA,
    },
    'simper': {
        'top_n': DEFAULT_SIMPER_TOP_N,
        'permutations': DEFAULT_SIMPER_PERMUTATIONS,
        'seed': DEFAULT_SEED,
    },
    'network': {
        'min_rel_abundance': DEFAULT_NETWORK_MIN_REL_ABUNDANCE,
        'p_threshold': DEFAULT_P_THRESHOLD,
        'r_threshold': DEFAULT_R_THRESHOLD,
        'top_n': DEFAULT_TOP_DEGREE_N,
    },
}
