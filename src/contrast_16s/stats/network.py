# ===================================== IMPORTS ====================================== #

# Standard Library Imports
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Set, Tuple, Union

# Third-Party Imports
import networkx as nx
import numpy as np
import pandas as pd
from scipy.stats import spearmanr

# Local Imports
from contrast_16s import constants
from contrast_16s.errors import StatisticalPreconditionError
from contrast_16s.utils.data import filter_abundance, require_taxa, table_to_df

# ========================== INITIALIZATION & CONFIGURATION ========================== #

logger = logging.getLogger(constants.LOGGER_NAME)

EDGE_COLUMNS = ['taxon_a', 'taxon_b', 'coefficient', 'p_value']

# ===================================== TYPES ======================================== #

@dataclass(frozen=True)
class CorrelationNetwork:
    """Spearman co-occurrence network of one sample group.

    ``edges_all`` holds every unordered taxon pair once; ``edges`` is the
    subset that passed both thresholds and makes up ``graph``.
    """
    correlation: pd.DataFrame
    p_values: pd.DataFrame
    edges_all: pd.DataFrame
    edges: pd.DataFrame
    graph: nx.Graph
    thresholds: Dict[str, Any] = field(default_factory=dict)

    @property
    def taxa(self):
        return list(self.correlation.index)


# =================================== FUNCTIONS ====================================== #

def spearman_matrix(table: pd.DataFrame) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """Spearman rank correlation and p-value matrices between taxa (columns).

    Constant taxa yield NaN coefficients and p-values.

    Raises:
        StatisticalPreconditionError: Fewer than 2 samples.
    """
    df = table_to_df(table)
    taxa = df.columns
    if len(taxa) < 2:
        raise ValueError("At least 2 taxa required for a correlation matrix")
    if df.shape[0] < 2:
        raise StatisticalPreconditionError(
            f"Spearman correlation needs at least 2 samples, got {df.shape[0]}"
        )

    rho, p_val = spearmanr(df.to_numpy(dtype=float), axis=0)
    if np.ndim(rho) == 0:
        # Two variables come back as scalars
        rho = np.array([[1.0, rho], [rho, 1.0]])
        p_val = np.array([[0.0, p_val], [p_val, 0.0]])

    return (
        pd.DataFrame(rho, index=taxa, columns=taxa),
        pd.DataFrame(p_val, index=taxa, columns=taxa),
    )


def flatten_edges(correlation: pd.DataFrame, p_values: pd.DataFrame) -> pd.DataFrame:
    """Upper triangle (diagonal excluded) of the correlation matrix as edges.

    Returns exactly ``T * (T - 1) / 2`` rows for ``T`` taxa, one per unordered
    pair, in row-major order.
    """
    taxa = correlation.index
    i, j = np.triu_indices(len(taxa), k=1)
    return pd.DataFrame({
        'taxon_a': taxa[i],
        'taxon_b': taxa[j],
        'coefficient': correlation.to_numpy()[i, j],
        'p_value': p_values.to_numpy()[i, j],
    }, columns=EDGE_COLUMNS)


def threshold_edges(
    edges: pd.DataFrame,
    p_threshold: float = constants.DEFAULT_P_THRESHOLD,
    r_threshold: float = constants.DEFAULT_R_THRESHOLD
) -> pd.DataFrame:
    """Keep edges with ``p < p_threshold`` and ``|r| > r_threshold``.

    NaN coefficients or p-values never pass.
    """
    mask = (edges['p_value'] < p_threshold) & (edges['coefficient'].abs() > r_threshold)
    return edges.loc[mask].reset_index(drop=True)


def build_network(
    table: pd.DataFrame,
    p_threshold: float = constants.DEFAULT_P_THRESHOLD,
    r_threshold: float = constants.DEFAULT_R_THRESHOLD,
    min_rel_abundance: Optional[float] = None
) -> CorrelationNetwork:
    """Build a Spearman co-occurrence network from one group's count table.

    Every retained taxon becomes a node, isolated ones included. Node
    attributes: ``degree`` (surviving incident edges) and ``size``
    (degree / max degree). Edge attributes: ``coefficient``, ``p_value``,
    ``sign`` and ``weight`` (|r| / max |r|).

    Args:
        table:             Count table of one group (samples x taxa).
        p_threshold:       Strict upper bound on edge p-values.
        r_threshold:       Strict lower bound on absolute coefficients.
        min_rel_abundance: Abundance filter applied to ``table`` first
                           (None = no filtering).

    Returns:
        CorrelationNetwork.

    Raises:
        DegenerateFilterError: Fewer than two taxa remain after filtering.
        StatisticalPreconditionError: Fewer than two samples.
    """
    df = table_to_df(table)
    if min_rel_abundance is not None:
        df = filter_abundance(df, min_rel_abundance)
    require_taxa(df, minimum=2, context="correlation input")

    correlation, p_values = spearman_matrix(df)
    edges_all = flatten_edges(correlation, p_values)
    edges = threshold_edges(edges_all, p_threshold, r_threshold)

    graph = nx.Graph()
    graph.add_nodes_from(correlation.index)
    max_abs_r = edges['coefficient'].abs().max() if len(edges) else 0.0
    for row in edges.itertuples(index=False):
        graph.add_edge(
            row.taxon_a, row.taxon_b,
            coefficient=row.coefficient,
            p_value=row.p_value,
            sign='positive' if row.coefficient > 0 else 'negative',
            weight=abs(row.coefficient) / max_abs_r
        )

    degrees = dict(graph.degree())
    max_degree = max(degrees.values()) if degrees else 0
    nx.set_node_attributes(graph, degrees, 'degree')
    nx.set_node_attributes(
        graph,
        {n: (d / max_degree if max_degree else 0.0) for n, d in degrees.items()},
        'size'
    )

    logger.debug(
        f"Network: {graph.number_of_nodes()} taxa, {len(edges)} / {len(edges_all)} "
        f"edges pass p < {p_threshold}, |r| > {r_threshold}"
    )
    return CorrelationNetwork(
        correlation=correlation,
        p_values=p_values,
        edges_all=edges_all,
        edges=edges,
        graph=graph,
        thresholds={
            'p_threshold': p_threshold,
            'r_threshold': r_threshold,
            'min_rel_abundance': min_rel_abundance,
        }
    )


def top_degree(
    network: Union[CorrelationNetwork, nx.Graph],
    n: int = constants.DEFAULT_TOP_DEGREE_N
) -> Set[str]:
    """Taxa with the highest degree, ties at the cutoff included.

    Every node whose degree is at least that of the ``n``-th ranked node is
    returned, so the result can hold more than ``n`` taxa.

    Raises:
        ValueError: If ``n < 1``.
    """
    if n < 1:
        raise ValueError(f"n must be ≥ 1, got {n}")
    graph = network.graph if isinstance(network, CorrelationNetwork) else network
    degrees = dict(graph.degree())
    if n >= len(degrees):
        return set(degrees)
    cutoff = sorted(degrees.values(), reverse=True)[n - 1]
    return {node for node, deg in degrees.items() if deg >= cutoff}


def network_summary(network: Union[CorrelationNetwork, nx.Graph]) -> Dict[str, Any]:
    """Topology metrics of a correlation network."""
    graph = network.graph if isinstance(network, CorrelationNetwork) else network
    n_nodes = graph.number_of_nodes()
    signs = [d.get('sign') for _, _, d in graph.edges(data=True)]
    return {
        'nodes': n_nodes,
        'edges': graph.number_of_edges(),
        'positive_edges': signs.count('positive'),
        'negative_edges': signs.count('negative'),
        'density': nx.density(graph) if n_nodes > 1 else 0.0,
        'mean_degree': float(np.mean([d for _, d in graph.degree()])) if n_nodes else 0.0,
        'avg_clustering': nx.average_clustering(graph) if n_nodes else 0.0,
        'components': nx.number_connected_components(graph) if n_nodes else 0,
    }
