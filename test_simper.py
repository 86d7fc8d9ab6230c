"""Tests for SIMPER decomposition of between-group Bray-Curtis dissimilarity."""

import numpy as np
import pandas as pd
import pytest
from scipy.spatial.distance import braycurtis

from contrast_16s.errors import InputShapeError, StatisticalPreconditionError
from contrast_16s.stats.simper import abundance_bias, simper, top_discriminant_taxa


def test_contributions_sum_to_mean_bray_curtis(two_group_data):
    table, meta = two_group_data
    res = simper(table, meta['group'], 'A', 'B')

    a = table[meta['group'] == 'A'].to_numpy()
    b = table[meta['group'] == 'B'].to_numpy()
    mean_bc = np.mean([braycurtis(x, y) for x in a for y in b])
    assert res['average'].sum() == pytest.approx(mean_bc)


def test_sorted_descending_with_cumulative_share(two_group_data):
    table, meta = two_group_data
    res = simper(table, meta['group'], 'A', 'B')
    assert res['average'].is_monotonic_decreasing
    assert res['cumulative'].is_monotonic_increasing
    assert res['cumulative'].iloc[-1] == pytest.approx(1.0)
    assert list(res.columns) == [
        'average', 'sd', 'ratio', 'mean_a', 'mean_b', 'cumulative', 'abundance_rank'
    ]


def test_group_means(scenario_table, scenario_groups):
    res = simper(scenario_table, scenario_groups, 'A', 'B')
    assert res.loc['t1', 'mean_a'] == pytest.approx(95.0)
    assert res.loc['t1', 'mean_b'] == pytest.approx(0.0)
    assert res.loc['t5', 'average'] == 0.0


def test_scenario_top_taxa(scenario_table, scenario_groups):
    res = simper(scenario_table, scenario_groups, 'A', 'B')
    assert set(top_discriminant_taxa(res, 2)) == {'t1', 't3'}


def test_top_discriminant_taxa_bounds(two_group_data):
    table, meta = two_group_data
    res = simper(table, meta['group'], 'A', 'B')
    assert len(top_discriminant_taxa(res, 3)) == 3
    assert len(top_discriminant_taxa(res, 100)) == len(res)
    with pytest.raises(ValueError):
        top_discriminant_taxa(res, 0)


def test_abundance_bias_is_strong(two_group_data):
    table, meta = two_group_data
    rho, _ = abundance_bias(simper(table, meta['group'], 'A', 'B'))
    assert rho > 0.5


def test_permutation_p_values(two_group_data):
    table, meta = two_group_data
    res = simper(table, meta['group'], 'A', 'B', permutations=19, seed=0)
    assert 'p_value' in res.columns
    assert res['p_value'].between(1 / 20, 1).all()
    assert res.loc['taxon_0', 'p_value'] == pytest.approx(1 / 20)

    again = simper(table, meta['group'], 'A', 'B', permutations=19, seed=0)
    pd.testing.assert_series_equal(res['p_value'], again['p_value'])


def test_missing_group_raises(scenario_table, scenario_groups):
    with pytest.raises(StatisticalPreconditionError):
        simper(scenario_table, scenario_groups, 'A', 'C')
    with pytest.raises(StatisticalPreconditionError):
        simper(scenario_table, scenario_groups, 'A', 'A')


def test_empty_sample_raises(scenario_table, scenario_groups):
    table = scenario_table.copy()
    table.loc['S4'] = 0
    with pytest.raises(InputShapeError):
        simper(table, scenario_groups, 'A', 'B')
