"""Tests for abundance filtering, table validation and the sample join."""

import logging

import pandas as pd
import pytest

from contrast_16s.errors import DegenerateFilterError, InputShapeError
from contrast_16s.utils.data import (
    align_table_and_metadata, check_sequencing_depth, filter_abundance,
    relative_abundance, require_taxa, subset_group, validate_table
)


# =========================================================================
# filter_abundance
# =========================================================================

class TestFilterAbundance:
    def test_zero_threshold_returns_table_unchanged(self, scenario_table):
        out = filter_abundance(scenario_table, 0)
        pd.testing.assert_frame_equal(out, scenario_table)

    def test_zero_threshold_keeps_all_zero_column(self, scenario_table):
        assert 't5' in filter_abundance(scenario_table, 0).columns

    def test_does_not_mutate_input(self, scenario_table):
        before = scenario_table.copy()
        filter_abundance(scenario_table, 0.3)
        pd.testing.assert_frame_equal(scenario_table, before)

    def test_drops_empty_column_and_keeps_groups_taxa(self, scenario_table):
        out = filter_abundance(scenario_table, 0.01)
        assert list(out.columns) == ['t1', 't2', 't3', 't4']

    def test_threshold_is_strict(self):
        # total 100, cutoff 10: a column summing to exactly 10 is dropped
        table = pd.DataFrame({'a': [45, 45], 'b': [5, 5]}, index=['x', 'y'])
        assert list(filter_abundance(table, 0.1).columns) == ['a']

    @pytest.mark.parametrize("threshold", [0.0, 0.01, 0.05, 0.2, 0.4])
    def test_idempotent(self, scenario_table, threshold):
        once = filter_abundance(scenario_table, threshold)
        twice = filter_abundance(once, threshold)
        pd.testing.assert_frame_equal(once, twice)

    @pytest.mark.parametrize("threshold", [-0.1, 1.0, 1.5])
    def test_threshold_out_of_range(self, scenario_table, threshold):
        with pytest.raises(ValueError):
            filter_abundance(scenario_table, threshold)

    def test_empty_table_raises(self):
        with pytest.raises(InputShapeError):
            filter_abundance(pd.DataFrame(), 0.1)

    def test_removing_everything_returns_empty_and_warns(self, scenario_table, caplog):
        with caplog.at_level(logging.WARNING, logger="contrast_16s"):
            out = filter_abundance(scenario_table, 0.9)
        assert out.shape == (4, 0)
        assert "removed all" in caplog.text

    def test_require_taxa_flags_degenerate_result(self, scenario_table):
        with pytest.raises(DegenerateFilterError):
            require_taxa(filter_abundance(scenario_table, 0.9))
        with pytest.raises(DegenerateFilterError):
            require_taxa(scenario_table[['t1']], minimum=2)


# =========================================================================
# Validation and join
# =========================================================================

class TestValidation:
    def test_non_numeric_cells_report_columns(self):
        table = pd.DataFrame({'a': [1, 2], 'b': ['x', 3]}, index=['s1', 's2'])
        with pytest.raises(InputShapeError) as err:
            validate_table(table)
        assert err.value.ids == ['b']

    def test_negative_counts(self):
        table = pd.DataFrame({'a': [1, -2]}, index=['s1', 's2'])
        with pytest.raises(InputShapeError) as err:
            validate_table(table)
        assert err.value.ids == ['s2']

    def test_duplicate_samples(self):
        table = pd.DataFrame({'a': [1, 2]}, index=['s1', 's1'])
        with pytest.raises(InputShapeError, match="Duplicate sample"):
            validate_table(table)

    def test_empty_table(self):
        with pytest.raises(InputShapeError):
            validate_table(pd.DataFrame(index=['s1']))


class TestAlign:
    def test_mismatch_lists_offending_ids(self, scenario_table):
        meta = pd.DataFrame({'group': ['A', 'A', 'B', 'B', 'B']},
                            index=['S1', 'S2', 'S3', 'S4', 'S9'])
        with pytest.raises(InputShapeError) as err:
            align_table_and_metadata(scenario_table, meta)
        assert err.value.ids == ['S9']
        assert 'S9' in str(err.value)

    def test_table_sample_without_metadata(self, scenario_table):
        meta = pd.DataFrame({'group': ['A', 'A', 'B']}, index=['S1', 'S2', 'S3'])
        with pytest.raises(InputShapeError) as err:
            align_table_and_metadata(scenario_table, meta)
        assert err.value.ids == ['S4']

    def test_reorders_metadata_to_table(self, scenario_table):
        meta = pd.DataFrame({'group': ['B', 'B', 'A', 'A']}, index=['S4', 'S3', 'S2', 'S1'])
        table, aligned = align_table_and_metadata(scenario_table, meta)
        assert list(aligned.index) == list(table.index)
        assert list(aligned['group']) == ['A', 'A', 'B', 'B']

    def test_missing_group_column(self, scenario_table):
        meta = pd.DataFrame({'site': list('abcd')}, index=['S1', 'S2', 'S3', 'S4'])
        with pytest.raises(InputShapeError, match="Group column"):
            align_table_and_metadata(scenario_table, meta)

    def test_unlabelled_samples(self, scenario_table):
        meta = pd.DataFrame({'group': ['A', None, 'B', 'B']}, index=['S1', 'S2', 'S3', 'S4'])
        with pytest.raises(InputShapeError) as err:
            align_table_and_metadata(scenario_table, meta)
        assert err.value.ids == ['S2']


# =========================================================================
# Depth and normalization
# =========================================================================

def test_relative_abundance_rows_sum_to_one(scenario_table):
    rel = relative_abundance(scenario_table)
    assert rel.sum(axis=1).tolist() == pytest.approx([1.0] * 4)


def test_relative_abundance_leaves_empty_samples_zero():
    table = pd.DataFrame({'a': [0, 2], 'b': [0, 2]}, index=['s1', 's2'])
    assert relative_abundance(table).loc['s1'].tolist() == [0.0, 0.0]


def test_depth_within_tolerance(scenario_table):
    assert check_sequencing_depth(scenario_table, tolerance=0.01)


def test_depth_outside_tolerance_warns(caplog):
    table = pd.DataFrame({'a': [100, 100, 150]}, index=['s1', 's2', 's3'])
    with caplog.at_level(logging.WARNING, logger="contrast_16s"):
        assert not check_sequencing_depth(table, tolerance=0.1)
    assert "s3" in caplog.text
    assert check_sequencing_depth(table, tolerance=0.6)


def test_subset_group(scenario_table, scenario_groups):
    assert list(subset_group(scenario_table, scenario_groups, 'B').index) == ['S3', 'S4']
