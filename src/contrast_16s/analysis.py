# ===================================== IMPORTS ====================================== #

# Standard Library Imports
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Set

# Third-Party Imports
import pandas as pd
from skbio.stats.distance import DistanceMatrix

# Local Imports
from contrast_16s import constants
from contrast_16s.config import merge_config
from contrast_16s.errors import StatisticalPreconditionError
from contrast_16s.stats.diversity import alpha_diversity, distance_matrix, pcoa
from contrast_16s.stats.multitest import adjust
from contrast_16s.stats.network import (
    CorrelationNetwork, build_network, network_summary, top_degree
)
from contrast_16s.stats.simper import abundance_bias, simper, top_discriminant_taxa
from contrast_16s.stats.tests import (
    analyze_alpha_diversity, compare_multivariate, compare_taxa
)
from contrast_16s.utils.data import (
    align_table_and_metadata, check_sequencing_depth, filter_abundance,
    require_taxa, subset_group
)
from contrast_16s.utils.io import export_tables, load_inputs
from contrast_16s.utils.progress import progress_iter

# ========================== INITIALISATION & CONFIGURATION ========================== #

logger = logging.getLogger(constants.LOGGER_NAME)

# ==================================== RECORDS ======================================= #

@dataclass
class GroupRecord:
    """Per-group state: the group's samples and its correlation network."""
    label: Any
    matrix: pd.DataFrame
    metadata: Optional[pd.DataFrame]
    correlation: pd.DataFrame
    network: CorrelationNetwork


@dataclass
class ContrastResults:
    """Outputs of every pipeline stage."""
    table: pd.DataFrame
    metadata: pd.DataFrame
    filtered: Optional[pd.DataFrame] = None
    depth_ok: Optional[bool] = None
    alpha_diversity: Optional[pd.DataFrame] = None
    alpha_tests: Optional[pd.DataFrame] = None
    distance_matrix: Optional[DistanceMatrix] = None
    ordination: Optional[pd.DataFrame] = None
    ordination_explained: Optional[pd.Series] = None
    permanova: Dict[str, float] = field(default_factory=dict)
    simper: Optional[pd.DataFrame] = None
    simper_abundance_bias: Optional[float] = None
    discriminant_taxa: Optional[pd.DataFrame] = None
    groups: Dict[Any, GroupRecord] = field(default_factory=dict)
    hub_taxa: Optional[pd.DataFrame] = None

    def network_summaries(self) -> pd.DataFrame:
        return pd.DataFrame(
            {label: network_summary(rec.network) for label, rec in self.groups.items()}
        ).T

    def to_tables(self) -> Dict[str, Optional[pd.DataFrame]]:
        """Result tables keyed by export file stem."""
        tables = {
            'alpha_diversity': self.alpha_diversity,
            'alpha_tests': self.alpha_tests,
            'pcoa': self.ordination,
            'permanova': pd.DataFrame([self.permanova]) if self.permanova else None,
            'simper': self.simper,
            'discriminant_taxa': self.discriminant_taxa,
            'hub_taxa': self.hub_taxa,
        }
        if self.groups:
            tables['network_summary'] = self.network_summaries()
        for label, rec in self.groups.items():
            tables[f"network_edges_{label}"] = rec.network.edges
        return tables


# ================================= GROUP NETWORKS =================================== #

def build_group_networks(
    table: pd.DataFrame,
    groups: pd.Series,
    metadata: Optional[pd.DataFrame] = None,
    p_threshold: float = constants.DEFAULT_P_THRESHOLD,
    r_threshold: float = constants.DEFAULT_R_THRESHOLD,
    min_rel_abundance: Optional[float] = constants.DEFAULT_NETWORK_MIN_REL_ABUNDANCE
) -> Dict[Any, GroupRecord]:
    """Build one correlation network per group label.

    Each group's samples are re-filtered at ``min_rel_abundance`` relative to
    that group's own total before correlating.

    Returns:
        Dict mapping group label to its GroupRecord, in sorted label order.

    Raises:
        StatisticalPreconditionError: A group has fewer than two samples.
    """
    labels = sorted(groups.dropna().unique())
    records: Dict[Any, GroupRecord] = {}
    for label in progress_iter(labels, "Building group networks"):
        matrix = subset_group(table, groups, label)
        if matrix.shape[0] < 2:
            raise StatisticalPreconditionError(
                f"Group '{label}' has {matrix.shape[0]} sample; a correlation network "
                f"needs at least 2"
            )
        network = build_network(
            matrix,
            p_threshold=p_threshold,
            r_threshold=r_threshold,
            min_rel_abundance=min_rel_abundance
        )
        records[label] = GroupRecord(
            label=label,
            matrix=matrix,
            metadata=metadata.loc[matrix.index] if metadata is not None else None,
            correlation=network.correlation,
            network=network
        )
        logger.info(
            f"Group '{label}': {matrix.shape[0]} samples, "
            f"{network.graph.number_of_nodes()} taxa, {len(network.edges)} edges"
        )
    return records


# =================================== PIPELINE ======================================= #

class ContrastAnalysis:
    """Two-group contrast of a 16S count table.

    Stages run strictly in order; a failing stage is logged and re-raised so
    nothing downstream runs on partial input.
    """

    def __init__(self, config: Optional[Dict] = None):
        self.config = merge_config(constants.DEFAULT_CONFIG, config or {})
        self.group_column = self.config['data']['group_column']
        self.groups: Optional[pd.Series] = None
        self.results: Optional[ContrastResults] = None

    # ─────────────────────────────── ENTRY POINTS ───────────────────────────────
    def run_from_files(self) -> ContrastResults:
        """Load the table and metadata named in the ``data`` section, then run."""
        data_cfg = self.config['data']
        if not data_cfg.get('table') or not data_cfg.get('metadata'):
            raise ValueError("Config section 'data' must set 'table' and 'metadata'")
        table, metadata = self._stage(
            "load", load_inputs,
            data_cfg['table'], data_cfg['metadata'],
            data_cfg['sample_id_column'], self.group_column
        )
        return self.run(table, metadata)

    def run(self, table: pd.DataFrame, metadata: pd.DataFrame) -> ContrastResults:
        logger.info("Running group contrast pipeline...")
        table, metadata = self._stage(
            "align", align_table_and_metadata, table, metadata, self.group_column
        )
        self.results = ContrastResults(table=table, metadata=metadata)
        self.groups = metadata[self.group_column]

        self._stage("filter", self._filter)
        self._stage("alpha diversity", self._alpha_diversity)
        self._stage("beta diversity", self._beta_diversity)
        self._stage("simper", self._simper)
        self._stage("networks", self._networks)

        output_dir = self.config['project'].get('output_dir')
        if output_dir:
            export_tables(self.results.to_tables(), Path(output_dir))
        logger.info("Group contrast pipeline finished.")
        return self.results

    def _stage(self, name: str, func: Callable, *args, **kwargs):
        try:
            return func(*args, **kwargs)
        except Exception as e:
            logger.error(f"Stage '{name}' failed: {e}")
            raise

    # ───────────────────────────────── STAGES ───────────────────────────────────
    def _filter(self) -> None:
        cfg = self.config['filter']
        res = self.results
        res.depth_ok = check_sequencing_depth(res.table, cfg['depth_tolerance'])
        res.filtered = require_taxa(
            filter_abundance(res.table, cfg['min_rel_abundance']),
            minimum=1, context="abundance-filtered table"
        )
        logger.info(
            f"Abundance filter: {res.table.shape[1]} → {res.filtered.shape[1]} taxa"
        )

    def _alpha_diversity(self) -> None:
        cfg = self.config['alpha']
        res = self.results
        frames = []
        if cfg.get('metrics'):
            frames.append(alpha_diversity(res.table, cfg['metrics']))
        precomputed = [c for c in cfg.get('metadata_columns') or [] if c in res.metadata.columns]
        missing = set(cfg.get('metadata_columns') or []) - set(precomputed)
        if missing:
            logger.warning(f"Alpha diversity columns not in metadata: {sorted(missing)}")
        if precomputed:
            frames.append(res.metadata[precomputed].apply(pd.to_numeric, errors='coerce'))
        if not frames:
            logger.info("No alpha diversity metrics configured; skipping")
            return
        res.alpha_diversity = pd.concat(frames, axis=1)
        res.alpha_tests = analyze_alpha_diversity(res.alpha_diversity, self.groups)
        for metric, row in res.alpha_tests.iterrows():
            logger.info(f"Alpha diversity {metric}: H={row['statistic']:.3f}, p={row['p_value']:.3g}")

    def _beta_diversity(self) -> None:
        cfg = self.config['beta']
        res = self.results
        res.distance_matrix = distance_matrix(res.filtered, cfg['metric'], cfg['normalize'])
        res.permanova = compare_multivariate(
            res.distance_matrix, self.groups, cfg['permutations'], cfg['seed']
        )
        logger.info(
            f"PERMANOVA ({cfg['metric']}): pseudo-F={res.permanova['pseudo_F']:.3f}, "
            f"p={res.permanova['p_value']:.3g}"
        )
        if res.distance_matrix.shape[0] >= 3:
            res.ordination, res.ordination_explained = pcoa(
                res.distance_matrix, cfg['n_dimensions']
            )
        else:
            logger.warning("Fewer than 3 samples; PCoA skipped")

    def _contrast_labels(self) -> List[Any]:
        configured = self.config['data'].get('group_values')
        labels = sorted(self.groups.unique())
        if configured:
            if len(configured) != 2:
                raise StatisticalPreconditionError(
                    f"'group_values' must name exactly 2 groups, got {configured}"
                )
            return list(configured)
        if len(labels) != 2:
            raise StatisticalPreconditionError(
                f"Found {len(labels)} groups {labels}; set 'data.group_values' "
                f"to choose the two to contrast"
            )
        return labels

    def _simper(self) -> None:
        cfg = self.config['simper']
        res = self.results
        group_a, group_b = self._contrast_labels()
        res.simper = simper(
            res.filtered, self.groups, group_a, group_b,
            permutations=cfg['permutations'], seed=cfg['seed']
        )
        rho, _ = abundance_bias(res.simper)
        res.simper_abundance_bias = rho
        logger.info(
            f"SIMPER {group_a} vs {group_b}: contribution rank vs abundance rank "
            f"Spearman rho = {rho:.3f}"
        )

        taxa = top_discriminant_taxa(res.simper, cfg['top_n'])
        res.discriminant_taxa = self._tested_family(taxa)
        n_sig = int((res.discriminant_taxa['p_adj'] < 0.05).sum())
        logger.info(f"Discriminant taxa: {n_sig}/{len(taxa)} with FDR < 0.05")

    def _networks(self) -> None:
        cfg = self.config['network']
        res = self.results
        res.groups = build_group_networks(
            res.filtered, self.groups, res.metadata,
            p_threshold=cfg['p_threshold'],
            r_threshold=cfg['r_threshold'],
            min_rel_abundance=cfg['min_rel_abundance']
        )
        hubs: Set[str] = set()
        for rec in res.groups.values():
            hubs |= top_degree(rec.network, cfg['top_n'])
        res.hub_taxa = self._tested_family(sorted(hubs))
        logger.info(f"Hub taxa: {len(hubs)} across {len(res.groups)} groups")

    def _tested_family(self, taxa: List[str]) -> pd.DataFrame:
        """Kruskal-Wallis per taxon with BH adjustment within this family only."""
        tested = compare_taxa(self.results.filtered, self.groups, taxa)
        tested['p_adj'] = adjust(tested['p_value'].astype(float))
        return tested
