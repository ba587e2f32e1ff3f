"""
===============================================================================
FILE: run_pipeline.py
PROJECT: District Sentiment Project
DATE: October 19, 2026
===============================================================================
PURPOSE:
    Run every stage in one go. Both analysis branches start from the same
    cleaned response table and share nothing else:

        mapping branch:  aggregate -> tokenize -> score -> join -> map
        keyness branch:  corpus -> dfm -> group -> keyness -> plot

    The lexicon and district boundaries are passed in as values, so either
    branch can be run against fixtures.

USAGE:
    python code/run_pipeline.py
===============================================================================
"""

import time
from config import (
    SURVEY_FILE, CLEANED_RESPONSES, DISTRICT_DOCUMENTS, DISTRICT_TOKENS,
    DISTRICT_SENTIMENT, SPATIAL_DISTRICT_SENTIMENT, DISTRICT_DFM,
    SENTIMENT_SCATTER_FIGURE, SENTIMENT_MAP_FIGURE,
    CLEANED_DIR, FEATURES_DIR, RESULTS_DIR, FIGURES_DIR,
    BOUNDARY_KEY, TARGET_DISTRICT, KEYNESS_MEASURE, COMPOUND_PHRASES,
    UNMATCHED_TOKEN_POLICY,
    keyness_results_path, keyness_figure_path, save_pickle
)
import helper_aggregate_by_district as agg_helper
from helper_fetch import fetch_lexicon, fetch_district_boundaries
from stage_01_clean import load_raw_responses, extract_responses
from stage_02_tokenize import build_token_table
from stage_03_sentiment import score_districts, plot_sentiment_scatter
from stage_04_map import join_boundaries, render_choropleth
from stage_05_keyness import district_keyness, top_keyness_terms, render_keyness_plot


def run_mapping_branch(df_responses, lexicon, boundaries, key=BOUNDARY_KEY,
                       unmatched_policy=UNMATCHED_TOKEN_POLICY):
    """
    Responses -> district documents -> tokens -> sentiment -> spatial table.

    Returns:
        dict with district_docs, tokens, sentiment and spatial tables
    """
    district_docs = agg_helper.aggregate_by_district(df_responses)
    tokens = build_token_table(district_docs)
    sentiment = score_districts(tokens, lexicon, unmatched_policy)
    spatial = join_boundaries(sentiment, boundaries, key)
    return {
        'district_docs': district_docs,
        'tokens': tokens,
        'sentiment': sentiment,
        'spatial': spatial,
    }


def run_keyness_branch(df_responses, target=TARGET_DISTRICT, measure=KEYNESS_MEASURE,
                       compound_phrases=COMPOUND_PHRASES):
    """
    Responses -> corpus -> grouped dfm -> keyness -> ranked terms.

    Returns:
        dict with grouped_dfm, keyness and ranked tables
    """
    grouped, keyness = district_keyness(df_responses, target, measure, compound_phrases)
    return {
        'grouped_dfm': grouped,
        'keyness': keyness,
        'ranked': top_keyness_terms(keyness),
    }


def main():
    print("\n" + "=" * 80)
    print("DISTRICT SENTIMENT PIPELINE")
    print("=" * 80 + "\n")

    start_time = time.time()
    for directory in [CLEANED_DIR, FEATURES_DIR, RESULTS_DIR, FIGURES_DIR]:
        directory.mkdir(parents=True, exist_ok=True)

    print("Step 1: Cleaning responses")
    print("-" * 40)
    if not SURVEY_FILE.exists():
        raise FileNotFoundError(
            f"Survey export not found at {SURVEY_FILE}\n"
            f"Download and unzip the survey archive into {SURVEY_FILE.parent}."
        )
    df_responses = extract_responses(load_raw_responses(SURVEY_FILE))
    df_responses.to_csv(CLEANED_RESPONSES, index=False)

    print("\nStep 2: Fetching reference data")
    print("-" * 40)
    lexicon = fetch_lexicon()
    boundaries = fetch_district_boundaries()

    print("\nStep 3: Mapping branch")
    print("-" * 40)
    mapping = run_mapping_branch(df_responses, lexicon, boundaries)
    mapping['district_docs'].to_csv(DISTRICT_DOCUMENTS, index=False)
    mapping['tokens'].to_csv(DISTRICT_TOKENS, index=False)
    mapping['sentiment'].to_csv(DISTRICT_SENTIMENT, index=False)
    mapping['spatial'].to_file(SPATIAL_DISTRICT_SENTIMENT, driver="GeoJSON")
    plot_sentiment_scatter(mapping['sentiment'], SENTIMENT_SCATTER_FIGURE)
    render_choropleth(mapping['spatial'], SENTIMENT_MAP_FIGURE)

    print("\nStep 4: Keyness branch")
    print("-" * 40)
    keyness = run_keyness_branch(df_responses)
    save_pickle(keyness['grouped_dfm'], DISTRICT_DFM)
    keyness['keyness'].to_csv(keyness_results_path(TARGET_DISTRICT), index=False)
    render_keyness_plot(keyness['ranked'], TARGET_DISTRICT,
                        keyness_figure_path(TARGET_DISTRICT))

    total_time = time.time() - start_time
    print(f"\n{'=' * 80}")
    print(f"{'PIPELINE COMPLETE':^80}")
    print(f"{'=' * 80}")
    print(f"\nTotal execution time: {total_time:.1f} seconds")
    print(f"  Responses: {len(df_responses):,}")
    print(f"  Districts scored: {len(mapping['sentiment']):,}")
    print(f"  Districts mapped: {len(mapping['spatial']):,}")
    print(f"  Keyness features: {len(keyness['keyness']):,}")
    print(f"{'=' * 80}\n")


if __name__ == "__main__":
    main()
