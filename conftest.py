import numpy as np
import pandas as pd
import pytest


@pytest.fixture
def scenario_table():
    """4 samples x 5 taxa: taxa 1-2 belong to group A, 3-4 to B, 5 is empty."""
    return pd.DataFrame(
        [[100, 0, 0, 0, 0],
         [90, 10, 0, 0, 0],
         [0, 0, 100, 0, 0],
         [0, 0, 90, 10, 0]],
        index=['S1', 'S2', 'S3', 'S4'],
        columns=['t1', 't2', 't3', 't4', 't5']
    )


@pytest.fixture
def scenario_groups():
    return pd.Series(['A', 'A', 'B', 'B'], index=['S1', 'S2', 'S3', 'S4'], name='group')


@pytest.fixture
def two_group_data():
    """Synthetic 20-sample table with two clearly separated groups.

    Group A is dominated by taxa 0-3 and group B by taxa 4-7. Within group A
    taxon_1 tracks taxon_0; within group B taxon_5 tracks taxon_4. taxon_8 is
    a rare taxon removed by the global abundance filter.
    """
    rng = np.random.default_rng(42)
    n = 10
    means_a = np.array([300, 150, 100, 80, 20, 15, 10, 5], dtype=float)
    means_b = means_a[[4, 5, 6, 7, 0, 1, 2, 3]]

    def simulate(means, driver, follower):
        counts = rng.poisson(means, size=(n, len(means))).astype(float)
        scale = np.linspace(0.5, 1.5, n)
        counts[:, driver] = np.round(means[driver] * scale)
        counts[:, follower] = np.round(means[follower] * scale) + rng.integers(0, 3, n)
        return counts

    counts = np.vstack([simulate(means_a, 0, 1), simulate(means_b, 4, 5)])
    rare = np.zeros((2 * n, 1))
    rare[0, 0] = 1
    counts = np.hstack([counts, rare]).astype(int)

    samples = [f"S{i:02d}" for i in range(1, 2 * n + 1)]
    taxa = [f"taxon_{i}" for i in range(counts.shape[1])]
    table = pd.DataFrame(counts, index=samples, columns=taxa)
    metadata = pd.DataFrame({
        'group': ['A'] * n + ['B'] * n,
        'shannon_precomputed': rng.normal(3.0, 0.2, 2 * n),
    }, index=pd.Index(samples, name='#sampleid'))
    return table, metadata
