"""End-to-end tests of the group contrast pipeline."""

import logging

import pandas as pd
import pytest

from contrast_16s.analysis import ContrastAnalysis, ContrastResults, GroupRecord
from contrast_16s.errors import DegenerateFilterError, InputShapeError, StatisticalPreconditionError


@pytest.fixture
def config(tmp_path):
    return {
        'project': {'output_dir': tmp_path / "results"},
        'alpha': {'metadata_columns': ['shannon_precomputed']},
        'beta': {'permutations': 99},
        'simper': {'top_n': 4},
        'network': {'p_threshold': 0.01, 'r_threshold': 0.7, 'top_n': 2},
    }


@pytest.fixture
def results(two_group_data, config):
    table, meta = two_group_data
    return ContrastAnalysis(config).run(table, meta)


def test_returns_all_stage_outputs(results):
    assert isinstance(results, ContrastResults)
    assert results.depth_ok is not None
    assert 'taxon_8' not in results.filtered.columns
    assert set(results.alpha_diversity.columns) == {
        'shannon', 'simpson', 'observed_features', 'shannon_precomputed'
    }
    assert list(results.ordination.columns) == ['PCo1', 'PCo2', 'PCo3']
    assert 1 / 100 <= results.permanova['p_value'] <= 0.05


def test_alpha_diversity_uses_unfiltered_counts(results):
    observed = results.alpha_diversity['observed_features']
    assert results.table.loc['S01', 'taxon_8'] > 0
    assert observed['S01'] == (results.table.loc['S01'] > 0).sum()
    assert observed['S01'] > (results.filtered.loc['S01'] > 0).sum()


def test_group_records(results):
    assert set(results.groups) == {'A', 'B'}
    record = results.groups['A']
    assert isinstance(record, GroupRecord)
    assert (record.metadata['group'] == 'A').all()
    assert record.network.graph.has_edge('taxon_0', 'taxon_1')
    assert results.groups['B'].network.graph.has_edge('taxon_4', 'taxon_5')


def test_discriminant_family_is_adjusted_on_its_own(results):
    family = results.discriminant_taxa
    assert list(family.index) == list(results.simper.index[:4])
    assert (family['p_adj'] >= family['p_value'] - 1e-12).all()
    assert family['p_adj'].between(0, 1).all()


def test_hub_family_covers_every_groups_top_degree(results):
    from contrast_16s.stats.network import top_degree

    expected = set()
    for record in results.groups.values():
        expected |= top_degree(record.network, 2)
    assert set(results.hub_taxa.index) == expected
    assert 'p_adj' in results.hub_taxa.columns


def test_exports_result_tables(results, tmp_path):
    out = tmp_path / "results"
    for stem in ['alpha_tests', 'permanova', 'simper', 'discriminant_taxa',
                 'hub_taxa', 'network_summary', 'network_edges_A', 'network_edges_B']:
        assert (out / f"{stem}.tsv").exists(), stem
    summary = pd.read_csv(out / "network_summary.tsv", sep='\t', index_col=0)
    assert set(summary.index) == {'A', 'B'}


def test_logs_abundance_bias(two_group_data, caplog):
    table, meta = two_group_data
    with caplog.at_level(logging.INFO, logger="contrast_16s"):
        ContrastAnalysis({'beta': {'permutations': 9}}).run(table, meta)
    assert "abundance rank" in caplog.text


def test_mismatched_samples_abort(two_group_data, caplog):
    table, meta = two_group_data
    with caplog.at_level(logging.ERROR, logger="contrast_16s"):
        with pytest.raises(InputShapeError):
            ContrastAnalysis().run(table, meta.drop(index='S03'))
    assert "Stage 'align' failed" in caplog.text


def test_degenerate_global_filter_aborts(two_group_data):
    table, meta = two_group_data
    with pytest.raises(DegenerateFilterError):
        ContrastAnalysis({'filter': {'min_rel_abundance': 0.9}}).run(table, meta)


def test_three_groups_need_explicit_contrast(two_group_data):
    table, meta = two_group_data
    meta = meta.copy()
    meta.loc[['S01', 'S02', 'S03'], 'group'] = 'C'
    with pytest.raises(StatisticalPreconditionError, match="group_values"):
        ContrastAnalysis({'beta': {'permutations': 9}}).run(table, meta)


def test_scenario_end_to_end(scenario_table, scenario_groups):
    meta = scenario_groups.to_frame()
    config = {
        'filter': {'min_rel_abundance': 0.01},
        'beta': {'permutations': 5},
        'network': {'top_n': 1},
    }
    results = ContrastAnalysis(config).run(scenario_table, meta)
    assert list(results.filtered.columns) == ['t1', 't2', 't3', 't4']
    corr_a = results.groups['A'].correlation
    corr_b = results.groups['B'].correlation
    assert abs(corr_a.loc['t1', 't2']) == pytest.approx(1.0)
    assert abs(corr_b.loc['t3', 't4']) == pytest.approx(1.0)
    assert results.permanova['p_value'] >= 1 / 6
