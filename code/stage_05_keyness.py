"""
===============================================================================
FILE: stage_05_keyness.py
PROJECT: District Sentiment Project
DATE: October 19, 2026
===============================================================================
PURPOSE:
    Compare the vocabulary of one district's responses against all other
    districts (keyness). This is Stage 5 of the pipeline.

DESCRIPTION OF STEPS:
    1. Load cleaned responses from Stage 1
    2. Build a corpus: one document per response, tagged with its district
    3. Tokenize each document:
       - Collapse configured multi-word phrases ("horse farms" -> horse_farms)
       - Remove punctuation
       - Lowercase
       - Remove stopwords
    4. Build a document-feature matrix (bag of words) with CountVectorizer
    5. Sum document rows per district
    6. Score every term on a 2x2 table (target vs. reference district,
       term vs. all other terms) with chi-squared or log-likelihood
    7. Save the keyness table and a two-sided bar plot

    Only responses assigned to a single district take part; combined or
    unknown districts are left out of both sides.

INPUT FILES:
    - data/02_cleaned/cleaned_responses.csv

OUTPUT FILES:
    - data/03_features/district_dfm.pkl
    - data/04_results/keyness_district_<target>.csv
    - figures/keyness_district_<target>.png

DEPENDENCIES:
    - scikit-learn (CountVectorizer)
    - scipy (sparse matrices, chi-squared distribution)
    - numpy, pandas, matplotlib

USAGE:
    python code/stage_05_keyness.py
===============================================================================
"""

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import scipy.sparse as sp
from scipy import stats
from sklearn.feature_extraction.text import CountVectorizer
from config import (
    CLEANED_RESPONSES, DISTRICT_DFM, FEATURES_DIR, RESULTS_DIR, FIGURES_DIR,
    TEXT_COLUMN, DISTRICT_KEY,
    COMPOUND_PHRASES, REMOVE_STOPWORDS, LOWERCASE,
    TARGET_DISTRICT, KEYNESS_MEASURE, KEYNESS_TOP_N,
    keyness_results_path, keyness_figure_path,
    save_pickle, create_sparse_dataframe
)
from stage_01_clean import SINGLE, load_cleaned_responses
from stage_02_tokenize import tokenize_text

KEYNESS_MEASURES = ("chi2", "lr")


def identity(x):
    return x


def build_corpus(df_responses):
    """
    One document per response, with a stable id and district metadata.

    Document ids follow row order: text1, text2, ...
    """
    corpus = df_responses[['response_id', 'question', 'district_code',
                           'district_kind', DISTRICT_KEY, TEXT_COLUMN]].copy()
    corpus.insert(0, 'doc_id', [f"text{i}" for i in range(1, len(corpus) + 1)])
    return corpus.reset_index(drop=True)


def tokenize_corpus(corpus, compound_phrases=COMPOUND_PHRASES):
    """Tokenize corpus documents for the document-feature matrix."""
    return tokenize_text(
        list(corpus[TEXT_COLUMN]),
        lowercase=LOWERCASE,
        remove_stopwords=REMOVE_STOPWORDS,
        alpha_only=False,
        compound_phrases=compound_phrases
    )


def build_dfm(token_lists, doc_ids):
    """
    Build a document-feature matrix from pre-tokenized documents.

    Returns:
        Sparse DataFrame (documents x features) of term counts; with no
        tokens at all (e.g. only stopwords) it has zero feature columns
    """
    doc_ids = list(doc_ids)
    if not any(len(tokens) for tokens in token_lists):
        X = sp.csr_matrix((len(doc_ids), 0), dtype=np.int64)
        return create_sparse_dataframe(X, doc_ids, [])

    vectorizer = CountVectorizer(
        preprocessor=identity,  # No preprocessing (already tokenized)
        tokenizer=identity,  # No tokenization (already tokenized)
        token_pattern=None,  # Disable regex tokenization
        lowercase=False
    )
    X = vectorizer.fit_transform(token_lists)
    return create_sparse_dataframe(X, doc_ids, vectorizer.get_feature_names_out())


def group_dfm(dfm, groups):
    """
    Sum document rows that share a group label.

    Args:
        dfm: Sparse document-feature DataFrame
        groups: Group label per document (same order as dfm rows)

    Returns:
        Sparse DataFrame with one row per group, sorted by group
    """
    categories = pd.Categorical(list(groups))
    n_docs = len(categories)
    indicator = sp.csr_matrix(
        (np.ones(n_docs, dtype=np.int64), (categories.codes, np.arange(n_docs))),
        shape=(len(categories.categories), n_docs)
    )
    if dfm.shape[1] == 0:
        X = sp.csr_matrix((n_docs, 0), dtype=np.int64)
    else:
        X = sp.csr_matrix(dfm.sparse.to_coo(), dtype=np.int64)
    grouped = indicator @ X
    return create_sparse_dataframe(grouped, list(categories.categories), dfm.columns)


def compute_keyness(grouped, target, measure=KEYNESS_MEASURE, correction=True):
    """
    Score every feature for association with the target group.

    For each feature a 2x2 table is formed:

                      feature   other features
        target           a            c
        reference        b            d

    where reference pools every group except the target.

    - chi2: Pearson chi-squared with Yates' continuity correction
            (same as scipy.stats.chi2_contingency(correction=True))
    - lr:   G-squared log-likelihood ratio, divided by Williams' correction
            factor q when `correction` is true

    Scores are signed: positive when the target uses the feature more
    often than expected.

    Returns:
        DataFrame with feature, score, p, n_target and n_reference columns,
        sorted by descending score

    Raises:
        ValueError: For an unknown measure, a missing target group, or
                    no reference text
    """
    if measure not in KEYNESS_MEASURES:
        raise ValueError(f"Unknown keyness measure {measure!r}; "
                         f"expected one of {KEYNESS_MEASURES}")
    if target not in grouped.index:
        raise ValueError(f"Target group {target!r} not found in {list(grouped.index)}")

    if grouped.shape[1] == 0:
        raise ValueError("Keyness needs tokens on both the target and reference side")

    counts = grouped.sparse.to_dense().to_numpy(dtype=float)
    is_target = np.asarray(grouped.index == target)
    a = counts[is_target].sum(axis=0)
    b = counts[~is_target].sum(axis=0)

    target_total = a.sum()
    reference_total = b.sum()
    if target_total == 0 or reference_total == 0:
        raise ValueError("Keyness needs tokens on both the target and reference side")

    c = target_total - a
    d = reference_total - b
    n = target_total + reference_total

    observed = np.vstack([a, b, c, d])
    row_totals = np.array([target_total, reference_total, target_total, reference_total])
    col_totals = np.vstack([a + b, a + b, c + d, c + d])
    expected = row_totals[:, None] * col_totals / n

    if measure == "chi2":
        # Every cell of a 2x2 table deviates from expectation by the same amount
        deviation = np.abs(a * d - b * c) / n
        corrected = deviation - np.minimum(0.5, deviation)
        with np.errstate(divide="ignore", invalid="ignore"):
            score = np.nansum(corrected ** 2 / expected, axis=0)
    else:
        with np.errstate(divide="ignore", invalid="ignore"):
            terms = np.where(observed > 0, observed * np.log(observed / expected), 0.0)
        score = 2 * terms.sum(axis=0)
        if correction:
            # Williams (1976) for a 2x2 table
            with np.errstate(divide="ignore", invalid="ignore"):
                q = 1 + ((n / target_total + n / reference_total - 1)
                         * (n / (a + b) + n / (c + d) - 1)) / (6 * n)
            score = np.where(np.isfinite(q), score / q, score)

    p = stats.chi2.sf(score, df=1)
    sign = np.where(a > expected[0], 1.0, -1.0)

    keyness = pd.DataFrame({
        'feature': list(grouped.columns),
        'score': sign * score,
        'p': p,
        'n_target': a.astype(int),
        'n_reference': b.astype(int),
    })
    return keyness.sort_values(['score', 'feature'], ascending=[False, True],
                               kind='mergesort').reset_index(drop=True)


def top_keyness_terms(keyness, n=KEYNESS_TOP_N):
    """
    Most associated terms on each side.

    Returns:
        DataFrame with term, association_score and side ("target" or
        "reference"); target terms first by descending score, then
        reference terms by ascending score
    """
    target_terms = keyness[keyness['score'] > 0].head(n)
    reference_terms = keyness[keyness['score'] < 0].sort_values(
        'score', kind='mergesort').head(n)

    target_terms = target_terms.assign(side='target')
    reference_terms = reference_terms.assign(side='reference')

    ranked = pd.concat([target_terms, reference_terms], ignore_index=True)
    return ranked.rename(columns={'feature': 'term', 'score': 'association_score'})[
        ['term', 'association_score', 'side']
    ]


def render_keyness_plot(ranked, target, output_path):
    """Two-sided horizontal bar plot of the ranked keyness terms."""
    # Largest target term on top, most negative reference term at the bottom
    ordered = ranked.sort_values('association_score', kind='mergesort')
    colors = ["#2A9D8F" if side == 'target' else "#6B7B8D" for side in ordered['side']]

    height = max(4, 0.3 * len(ordered))
    fig, ax = plt.subplots(figsize=(8, height))
    ax.barh(range(len(ordered)), ordered['association_score'], color=colors)
    ax.set_yticks(range(len(ordered)))
    ax.set_yticklabels(ordered['term'])
    ax.axvline(0, color="black", linewidth=0.8)
    ax.set_xlabel("Keyness (signed)")
    ax.set_title(f"District {target} vs. all other districts")

    output_path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(output_path, dpi=150, bbox_inches="tight")
    plt.close(fig)
    print(f"  Plot saved to: {output_path}")
    return output_path


def district_keyness(df_responses, target=TARGET_DISTRICT, measure=KEYNESS_MEASURE,
                     compound_phrases=COMPOUND_PHRASES):
    """
    Run the keyness branch end to end on the cleaned response table.

    Returns:
        (grouped_dfm, keyness) tuple
    """
    single = df_responses[df_responses['district_kind'] == SINGLE]
    corpus = build_corpus(single)
    print(f"  Corpus: {len(corpus):,} documents")

    tokens = tokenize_corpus(corpus, compound_phrases)
    dfm = build_dfm(tokens, corpus['doc_id'])
    print(f"  Document-feature matrix: {dfm.shape[0]:,} documents × {dfm.shape[1]:,} features")

    grouped = group_dfm(dfm, corpus[DISTRICT_KEY].astype(int))
    print(f"  Grouped into {grouped.shape[0]:,} districts")

    keyness = compute_keyness(grouped, target, measure)
    return grouped, keyness


def main():
    """Execute the complete keyness stage."""
    print("\n" + "="*80)
    print("STAGE 5: DISTRICT KEYNESS")
    print("="*80 + "\n")

    print(f"Settings:")
    print(f"  Target district: {TARGET_DISTRICT}")
    print(f"  Measure: {KEYNESS_MEASURE}")
    print(f"  Compound phrases: {len(COMPOUND_PHRASES)}")
    print(f"  Remove stopwords: {REMOVE_STOPWORDS}")
    print()

    FEATURES_DIR.mkdir(parents=True, exist_ok=True)
    RESULTS_DIR.mkdir(parents=True, exist_ok=True)
    FIGURES_DIR.mkdir(parents=True, exist_ok=True)

    print("Step 1: Building corpus and document-feature matrix")
    print("-" * 40)
    df_responses = load_cleaned_responses(CLEANED_RESPONSES)
    grouped, keyness = district_keyness(df_responses)
    save_pickle(grouped, DISTRICT_DFM)

    print("\nStep 2: Saving keyness results")
    print("-" * 40)
    results_path = keyness_results_path(TARGET_DISTRICT)
    keyness.to_csv(results_path, index=False)
    print(f"  Keyness saved to: {results_path}")

    print("\nStep 3: Plotting")
    print("-" * 40)
    ranked = top_keyness_terms(keyness)
    figure_path = keyness_figure_path(TARGET_DISTRICT)
    render_keyness_plot(ranked, TARGET_DISTRICT, figure_path)

    print("\n" + "="*80)
    print("SUMMARY")
    print("="*80)
    print(f"\nKEYNESS (district {TARGET_DISTRICT}):")
    print(f"  Features scored: {len(keyness):,}")
    print(f"  Significant at p < 0.05: {(keyness['p'] < 0.05).sum():,}")
    for side in ['target', 'reference']:
        terms = ranked[ranked['side'] == side]['term'].head(5).tolist()
        print(f"  Top {side} terms: {', '.join(terms)}")

    print(f"\nOutput files:")
    print(f"  {DISTRICT_DFM}")
    print(f"  {results_path}")
    print(f"  {figure_path}")

    print("\n" + "="*80)
    print("STAGE 5 COMPLETE")
    print("="*80 + "\n")


if __name__ == "__main__":
    main()
