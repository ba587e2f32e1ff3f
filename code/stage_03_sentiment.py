"""
===============================================================================
FILE: stage_03_sentiment.py
PROJECT: District Sentiment Project
DATE: October 19, 2026
===============================================================================
PURPOSE:
    Score each district's document against a word-level sentiment lexicon.
    This is Stage 3 of the pipeline.

DESCRIPTION:
    1. Load the district token table from Stage 2
    2. Load the AFINN lexicon (word -> integer score in [-5, 5])
    3. Join tokens to the lexicon on exact word match
       - Unmatched tokens are dropped, not scored as zero
         (UNMATCHED_TOKEN_POLICY = "zero" switches to zero-scoring)
    4. Average matched scores per district (unweighted: every matched
       token counts once, regardless of which response it came from)
    5. Save the district sentiment table and a diagnostic scatter plot

    Districts with no matched tokens get no row.

INPUT FILES:
    - data/03_features/district_tokens.csv
    - data/01_raw/afinn_165.tsv (downloaded on first run)

OUTPUT FILES:
    - data/04_results/district_sentiment.csv
    - figures/district_sentiment_scatter.png

USAGE:
    python code/stage_03_sentiment.py
===============================================================================
"""

import matplotlib.pyplot as plt
import pandas as pd
from config import (
    DISTRICT_TOKENS, DISTRICT_SENTIMENT, SENTIMENT_SCATTER_FIGURE,
    RESULTS_DIR, FIGURES_DIR,
    DISTRICT_KEY, SENTIMENT_COLUMN,
    UNMATCHED_TOKEN_POLICY
)
from helper_fetch import fetch_lexicon
from stage_02_tokenize import load_token_table

UNMATCHED_POLICIES = ("exclude", "zero")

# Districts shown on the diagnostic plot's categorical axis
PLOT_DISTRICTS = list(range(1, 13))


def match_lexicon(df_tokens, lexicon, unmatched_policy=UNMATCHED_TOKEN_POLICY):
    """
    Attach lexicon scores to tokens.

    Args:
        df_tokens: Token table (district, position, word)
        lexicon: DataFrame with word and value columns
        unmatched_policy: "exclude" drops unmatched tokens,
                          "zero" keeps them with a score of 0

    Returns:
        Token table with a value column, in token order
    """
    if unmatched_policy not in UNMATCHED_POLICIES:
        raise ValueError(
            f"Unknown unmatched token policy {unmatched_policy!r}; "
            f"expected one of {UNMATCHED_POLICIES}"
        )

    how = 'inner' if unmatched_policy == 'exclude' else 'left'
    matched = pd.merge(df_tokens, lexicon[['word', 'value']], on='word', how=how)
    if unmatched_policy == 'zero':
        matched['value'] = matched['value'].fillna(0)

    return matched.sort_values('position', kind='mergesort').reset_index(drop=True)


def score_districts(df_tokens, lexicon, unmatched_policy=UNMATCHED_TOKEN_POLICY):
    """
    Compute mean lexicon sentiment per district.

    Returns:
        DataFrame with district and sentiment columns, one row per district
        that had at least one scored token
    """
    matched = match_lexicon(df_tokens, lexicon, unmatched_policy)

    scores = (
        matched
        .groupby(DISTRICT_KEY, as_index=False, sort=True)['value']
        .mean()
        .rename(columns={'value': SENTIMENT_COLUMN})
    )
    scores[DISTRICT_KEY] = scores[DISTRICT_KEY].astype(int)
    scores[SENTIMENT_COLUMN] = scores[SENTIMENT_COLUMN].astype(float)
    return scores.dropna(subset=[SENTIMENT_COLUMN]).reset_index(drop=True)


def plot_sentiment_scatter(df_scores, output_path, districts=None):
    """
    Diagnostic plot of mean sentiment by district.

    The x-axis is categorical: every district in `districts` gets a slot
    whether or not it has a score.
    """
    if districts is None:
        districts = PLOT_DISTRICTS
    categories = [str(d) for d in districts]
    positions = {label: i for i, label in enumerate(categories)}

    shown = df_scores[df_scores[DISTRICT_KEY].astype(str).isin(list(positions))]

    fig, ax = plt.subplots(figsize=(8, 5))
    ax.scatter(
        [positions[str(d)] for d in shown[DISTRICT_KEY]],
        shown[SENTIMENT_COLUMN],
        s=60,
        color="#2A9D8F"
    )
    ax.axhline(0, color="#999999", linewidth=0.8, linestyle="--")
    ax.set_xticks(range(len(categories)))
    ax.set_xticklabels(categories)
    ax.set_xlabel("Likely council district")
    ax.set_ylabel("Mean sentiment score")
    ax.set_title("Mean lexicon sentiment by district")

    output_path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(output_path, dpi=150, bbox_inches="tight")
    plt.close(fig)
    print(f"  Plot saved to: {output_path}")
    return output_path


def load_district_sentiment(path=DISTRICT_SENTIMENT):
    """Load the Stage 3 output."""
    if not path.exists():
        raise FileNotFoundError(
            f"District sentiment not found at {path}\n"
            f"Please run stage_03_sentiment.py first."
        )
    return pd.read_csv(path)


def main():
    """Execute the complete sentiment scoring stage."""
    print("\n" + "="*80)
    print("STAGE 3: LEXICON SENTIMENT SCORING")
    print("="*80 + "\n")

    print(f"Settings:")
    print(f"  Unmatched tokens: {UNMATCHED_TOKEN_POLICY}")
    print()

    RESULTS_DIR.mkdir(parents=True, exist_ok=True)
    FIGURES_DIR.mkdir(parents=True, exist_ok=True)

    print("Step 1: Loading tokens and lexicon")
    print("-" * 40)
    df_tokens = load_token_table(DISTRICT_TOKENS)
    print(f"  Loaded {len(df_tokens):,} tokens")
    lexicon = fetch_lexicon()

    print("\nStep 2: Scoring districts")
    print("-" * 40)
    matched = match_lexicon(df_tokens, lexicon)
    print(f"  Matched {len(matched):,} of {len(df_tokens):,} tokens")
    df_scores = score_districts(df_tokens, lexicon)
    df_scores.to_csv(DISTRICT_SENTIMENT, index=False)
    print(f"  Scores saved to: {DISTRICT_SENTIMENT}")

    print("\nStep 3: Plotting")
    print("-" * 40)
    plot_sentiment_scatter(df_scores, SENTIMENT_SCATTER_FIGURE)

    print("\n" + "="*80)
    print("SUMMARY")
    print("="*80)
    print(f"\nDISTRICT SENTIMENT:")
    print(f"  Districts scored: {len(df_scores):,}")
    if len(df_scores) > 0:
        best = df_scores.loc[df_scores[SENTIMENT_COLUMN].idxmax()]
        worst = df_scores.loc[df_scores[SENTIMENT_COLUMN].idxmin()]
        print(f"  Mean sentiment: {df_scores[SENTIMENT_COLUMN].mean():.3f}")
        print(f"  Most positive: district {int(best[DISTRICT_KEY])} ({best[SENTIMENT_COLUMN]:.3f})")
        print(f"  Most negative: district {int(worst[DISTRICT_KEY])} ({worst[SENTIMENT_COLUMN]:.3f})")

    print(f"\nOutput files:")
    print(f"  {DISTRICT_SENTIMENT}")
    print(f"  {SENTIMENT_SCATTER_FIGURE}")

    print("\n" + "="*80)
    print("STAGE 3 COMPLETE")
    print("="*80 + "\n")


if __name__ == "__main__":
    main()
