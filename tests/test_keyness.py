"""
Tests for the corpus, document-feature matrix and keyness statistics.

Tests cover:
- Stable document ids and metadata
- Compounding, punctuation and stopword removal
- DFM construction and grouping by district
- Chi-squared and log-likelihood scores against scipy
- Ranked two-sided term lists and the bar plot
"""

import numpy as np
import pandas as pd
import pytest
import scipy.sparse as sp
from scipy.stats import chi2_contingency

from config import create_sparse_dataframe
from stage_01_clean import extract_responses
from stage_02_tokenize import tokenize_text
from stage_05_keyness import (
    build_corpus,
    build_dfm,
    compute_keyness,
    district_keyness,
    group_dfm,
    render_keyness_plot,
    top_keyness_terms,
)


@pytest.fixture
def grouped():
    """Three districts by three features."""
    counts = np.array([
        [10, 2, 5],
        [1, 8, 5],
        [0, 3, 6],
    ])
    return create_sparse_dataframe(
        sp.csr_matrix(counts), [1, 2, 3], ['farms', 'traffic', 'parks']
    )


# =============================================================
# TEST: Corpus and tokenization
# =============================================================

class TestCorpus:
    """Test one document per response."""

    def test_doc_ids_follow_row_order(self, raw_survey):
        """Documents are numbered text1, text2, ... in row order."""
        corpus = build_corpus(extract_responses(raw_survey))
        assert list(corpus['doc_id']) == [f"text{i}" for i in range(1, 6)]

    def test_metadata_kept(self, raw_survey):
        """Each document carries its district."""
        corpus = build_corpus(extract_responses(raw_survey))
        assert corpus.loc[0, 'district'] == 12
        assert corpus.loc[0, 'response_id'] == '1'

    def test_compound_phrases(self):
        """Configured phrases collapse to one token, case-insensitively."""
        tokens = tokenize_text(
            ["Protect the Horse Farms!"],
            remove_stopwords=True,
            alpha_only=False,
            compound_phrases=["horse farms"]
        )
        assert tokens == [["protect", "horse_farms"]]

    def test_longest_phrase_wins(self):
        """Overlapping phrases keep the longest match."""
        tokens = tokenize_text(
            ["protect the urban service boundary"],
            remove_stopwords=True,
            alpha_only=False,
            compound_phrases=["urban service", "urban service boundary"]
        )
        assert tokens == [["protect", "urban_service_boundary"]]

    def test_stopwords_and_punctuation_removed(self):
        """Stopwords and punctuation never reach the DFM."""
        tokens = tokenize_text(
            ["The parks, and the trails."],
            remove_stopwords=True,
            alpha_only=False
        )
        assert tokens == [["parks", "trails"]]

    def test_no_compounds_without_phrases(self):
        """Without a phrase list, words stay separate."""
        tokens = tokenize_text(["horse farms"], remove_stopwords=True, alpha_only=False)
        assert tokens == [["horse", "farms"]]


# =============================================================
# TEST: Document-feature matrix
# =============================================================

class TestDfm:
    """Test bag-of-words counts and grouping."""

    def test_counts(self):
        """Cells hold term frequencies per document."""
        dfm = build_dfm([["farms", "farms", "parks"], ["parks"]], ["text1", "text2"])
        assert list(dfm.index) == ["text1", "text2"]
        assert dfm.loc["text1", "farms"] == 2
        assert dfm.loc["text2", "parks"] == 1
        assert dfm.loc["text2", "farms"] == 0

    def test_group_sums_rows(self):
        """Grouping sums the documents of each district."""
        dfm = build_dfm(
            [["farms"], ["parks", "farms"], ["farms", "farms"]],
            ["text1", "text2", "text3"]
        )
        grouped = group_dfm(dfm, [12, 3, 12])
        assert list(grouped.index) == [3, 12]
        assert grouped.loc[12, "farms"] == 3
        assert grouped.loc[3, "farms"] == 1
        assert grouped.loc[3, "parks"] == 1
        assert grouped.loc[12, "parks"] == 0

    def test_grouped_counts_fill_with_zero(self):
        """Grouped counts stay integer with a zero fill value, never NaN."""
        dfm = build_dfm(
            [["farms"], ["parks", "farms"], ["farms", "farms"]],
            ["text1", "text2", "text3"]
        )
        grouped = group_dfm(dfm, [12, 3, 12])
        assert grouped.sparse.fill_value == 0
        dense = grouped.sparse.to_dense()
        assert not dense.isna().any().any()
        assert all(pd.api.types.is_integer_dtype(dtype) for dtype in dense.dtypes)

    def test_float_matrix_fills_with_zero(self):
        """Sparse frames built from float matrices also fill with zero."""
        frame = create_sparse_dataframe(
            sp.csr_matrix(np.array([[1.0, 0.0], [0.0, 2.0]])), ['x', 'y'], ['a', 'b'])
        assert frame.sparse.fill_value == 0
        assert frame.loc['x', 'b'] == 0

    def test_no_tokens_gives_empty_dfm(self):
        """Documents without any tokens give a DFM with no features."""
        dfm = build_dfm([[], []], ["text1", "text2"])
        assert list(dfm.index) == ["text1", "text2"]
        assert dfm.shape == (2, 0)
        grouped = group_dfm(dfm, [12, 3])
        assert list(grouped.index) == [3, 12]
        assert grouped.shape[1] == 0


# =============================================================
# TEST: Keyness statistics
# =============================================================

class TestComputeKeyness:
    """Test the 2x2 association measures."""

    def test_chi2_matches_scipy(self, grouped):
        """Chi-squared with Yates' correction agrees with scipy."""
        keyness = compute_keyness(grouped, 1, measure="chi2").set_index('feature')
        # farms: target 10 of 17 tokens, reference 1 of 23
        stat, p, _, _ = chi2_contingency([[10, 7], [1, 22]], correction=True)
        assert keyness.loc['farms', 'score'] == pytest.approx(stat)
        assert keyness.loc['farms', 'p'] == pytest.approx(p)

    def test_lr_uncorrected_matches_scipy(self, grouped):
        """Plain G-squared agrees with scipy's log-likelihood statistic."""
        keyness = compute_keyness(grouped, 1, measure="lr", correction=False).set_index('feature')
        # traffic: target 2 of 17 tokens, reference 11 of 23
        stat, p, _, _ = chi2_contingency(
            [[2, 15], [11, 12]], correction=False, lambda_="log-likelihood")
        assert keyness.loc['traffic', 'score'] == pytest.approx(-stat)
        assert keyness.loc['traffic', 'p'] == pytest.approx(p)

    def test_lr_williams_correction(self, grouped):
        """By default G-squared is divided by Williams' q."""
        keyness = compute_keyness(grouped, 1, measure="lr").set_index('feature')
        stat, _, _, _ = chi2_contingency(
            [[2, 15], [11, 12]], correction=False, lambda_="log-likelihood")
        n = 40
        q = 1 + (n / 17 + n / 23 - 1) * (n / 13 + n / 27 - 1) / (6 * n)
        assert q > 1
        assert keyness.loc['traffic', 'score'] == pytest.approx(-stat / q)
        assert abs(keyness.loc['traffic', 'score']) < stat

    def test_sign_follows_direction(self, grouped):
        """Overused terms score positive, underused negative."""
        keyness = compute_keyness(grouped, 1).set_index('feature')
        assert keyness.loc['farms', 'score'] > 0
        assert keyness.loc['traffic', 'score'] < 0

    def test_counts_and_order(self, grouped):
        """Counts are reported and rows sorted by descending score."""
        keyness = compute_keyness(grouped, 1)
        assert keyness['score'].is_monotonic_decreasing
        farms = keyness.set_index('feature').loc['farms']
        assert farms['n_target'] == 10
        assert farms['n_reference'] == 1

    def test_missing_target(self, grouped):
        """A target with no documents is an error."""
        with pytest.raises(ValueError, match="not found"):
            compute_keyness(grouped, 7)

    def test_no_reference(self):
        """A single group has nothing to compare against."""
        only = create_sparse_dataframe(sp.csr_matrix(np.array([[1, 2]])), [1], ['a', 'b'])
        with pytest.raises(ValueError, match="both"):
            compute_keyness(only, 1)

    def test_unknown_measure(self, grouped):
        """Only chi2 and lr are supported."""
        with pytest.raises(ValueError, match="measure"):
            compute_keyness(grouped, 1, measure="pmi")


# =============================================================
# TEST: Ranked terms and plot
# =============================================================

class TestTopKeynessTerms:
    """Test the two-sided ranked list."""

    def test_sides(self, grouped):
        """Target terms are positive, reference terms negative."""
        ranked = top_keyness_terms(compute_keyness(grouped, 1), n=5)
        assert list(ranked.columns) == ['term', 'association_score', 'side']
        assert (ranked.loc[ranked['side'] == 'target', 'association_score'] > 0).all()
        assert (ranked.loc[ranked['side'] == 'reference', 'association_score'] < 0).all()
        assert ranked.iloc[0]['term'] == 'farms'

    def test_limit_per_side(self, grouped):
        """At most n terms per side."""
        ranked = top_keyness_terms(compute_keyness(grouped, 1), n=1)
        assert ranked['side'].value_counts().max() <= 1

    def test_plot_written(self, grouped, tmp_path):
        """The bar plot is saved."""
        ranked = top_keyness_terms(compute_keyness(grouped, 1))
        path = render_keyness_plot(ranked, 1, tmp_path / "keyness.png")
        assert path.exists()


# =============================================================
# TEST: Keyness branch
# =============================================================

class TestDistrictKeyness:
    """Test the full keyness branch on cleaned responses."""

    def test_end_to_end(self):
        """Target vocabulary surfaces on the target side."""
        df = pd.DataFrame({
            'response_id': ['1', '2', '3', '4', '5'],
            'likely_council_district': ['12', '12', '3', '3', '5,7'],
            'growth_open_response': [
                'Save the horse farms',
                'horse farms and farmland',
                'more traffic lights downtown',
                'traffic traffic traffic',
                'horse farms paddocks',
            ],
        })
        grouped, keyness = district_keyness(
            extract_responses(df), target=12, compound_phrases=["horse farms"])
        assert list(grouped.index) == [3, 12]
        scores = keyness.set_index('feature')['score']
        assert scores['horse_farms'] > 0
        assert scores['traffic'] < 0
        # the combined-district response is left out entirely
        assert keyness.set_index('feature').loc['horse_farms', 'n_target'] == 2
        assert 'paddocks' not in scores.index

    def test_only_stopwords(self):
        """A corpus of stopwords has nothing to compare."""
        df = pd.DataFrame({
            'response_id': ['1', '2'],
            'likely_council_district': ['12', '3'],
            'growth_open_response': ['the and of', 'it is what it is'],
        })
        with pytest.raises(ValueError, match="both"):
            district_keyness(extract_responses(df), target=12, compound_phrases=[])
