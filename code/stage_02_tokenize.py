"""
===============================================================================
FILE: stage_02_tokenize.py
PROJECT: District Sentiment Project
DATE: October 19, 2026
===============================================================================
PURPOSE:
    Tokenize the per-district documents with the spaCy tokenizer.
    This is Stage 2 of the pipeline.

DESCRIPTION:
    1. Load cleaned responses from Stage 1
    2. Aggregate them into one document per district
    3. Split each document into word tokens:
       - Alphabetic tokens only (punctuation and numbers dropped)
       - Lowercasing (if enabled in config) to match the lexicon
    4. Number every token across the whole stream (position index)
    5. Save the district documents and the token table

    tokenize_text() is shared with the keyness stage, which also collapses
    multi-word phrases and removes stopwords.

INPUT FILES:
    - data/02_cleaned/cleaned_responses.csv

OUTPUT FILES:
    - data/02_cleaned/district_documents.csv
    - data/03_features/district_tokens.csv

DEPENDENCIES:
    - spacy (blank English tokenizer, no model download needed)
    - pandas
    - tqdm

USAGE:
    python code/stage_02_tokenize.py
===============================================================================
"""

import pandas as pd
import spacy
from spacy.matcher import PhraseMatcher
from spacy.util import filter_spans
from tqdm import tqdm
from config import (
    CLEANED_RESPONSES, DISTRICT_DOCUMENTS, DISTRICT_TOKENS,
    CLEANED_DIR, FEATURES_DIR,
    TEXT_COLUMN, DISTRICT_KEY,
    LOWERCASE
)
import helper_aggregate_by_district as agg_helper
from stage_01_clean import load_cleaned_responses

# Only the tokenizer is needed: a blank pipeline keeps stopword flags and
# lexical attributes without a trained model
print("Loading spaCy tokenizer...")
nlp = spacy.blank("en")


def build_phrase_matcher(phrases):
    """Case-insensitive matcher for multi-word expressions."""
    matcher = PhraseMatcher(nlp.vocab, attr="LOWER")
    matcher.add("COMPOUND", [nlp.make_doc(phrase) for phrase in phrases])
    return matcher


def compound_tokens(doc, matcher):
    """Merge every matched phrase in `doc` into a single token."""
    spans = filter_spans([doc[start:end] for _, start, end in matcher(doc)])
    with doc.retokenize() as retokenizer:
        for span in spans:
            retokenizer.merge(span)
    return doc


def tokenize_text(text_series, lowercase=LOWERCASE, remove_stopwords=False,
                  alpha_only=True, compound_phrases=None, batch_size=500):
    """
    Split text into word tokens using the spaCy tokenizer.

    Performs:
    - Compounding: multi-word phrases become one token joined by "_"
      (only when compound_phrases is given)
    - Filtering: alphabetic tokens only, or everything except punctuation
      and whitespace when alpha_only is False
    - Lowercasing (if enabled)
    - Stopword removal (if enabled); compounds are never stopwords

    Example:
        "Protect the horse farms!"  (compound_phrases=["horse farms"],
                                     remove_stopwords=True, alpha_only=False)
        -> ["protect", "horse_farms"]

    Args:
        text_series: pandas Series or list of text documents
        lowercase: Fold tokens to lowercase
        remove_stopwords: Drop spaCy's English stopwords
        alpha_only: Keep only alphabetic tokens
        compound_phrases: Multi-word expressions to collapse first
        batch_size: Number of texts to process simultaneously

    Returns:
        List of lists containing tokens
    """
    matcher = build_phrase_matcher(compound_phrases) if compound_phrases else None

    cleaned_texts = []
    for doc in tqdm(
        nlp.pipe(text_series, batch_size=batch_size),
        total=len(text_series),
        desc="Tokenizing text"
    ):
        if matcher is not None:
            doc = compound_tokens(doc, matcher)

        tokens = []
        for token in doc:
            if token.is_space:
                continue

            # Merged phrases are the only tokens with inner whitespace
            is_compound = matcher is not None and " " in token.text

            if is_compound:
                word = "_".join(token.text.split())
            elif alpha_only and not token.is_alpha:
                continue
            elif token.is_punct:
                continue
            else:
                word = token.text

            if remove_stopwords and not is_compound and token.is_stop:
                continue

            if lowercase:
                word = word.lower()

            tokens.append(word)

        cleaned_texts.append(tokens)

    return cleaned_texts


def build_token_table(district_docs):
    """
    Explode district documents into one row per token.

    The position index runs over the full token stream (it is not reset
    per district) and is kept for traceability only.

    Args:
        district_docs: DataFrame with district and text columns

    Returns:
        DataFrame with district, position and word columns
    """
    tokenized = tokenize_text(list(district_docs[TEXT_COLUMN]))

    rows = []
    for district, tokens in zip(district_docs[DISTRICT_KEY], tokenized):
        for word in tokens:
            rows.append({DISTRICT_KEY: int(district), 'word': word})

    df_tokens = pd.DataFrame(rows, columns=[DISTRICT_KEY, 'word'])
    df_tokens.insert(1, 'position', range(len(df_tokens)))
    return df_tokens


def load_token_table(path=DISTRICT_TOKENS):
    """Load the Stage 2 token table."""
    if not path.exists():
        raise FileNotFoundError(
            f"District tokens not found at {path}\n"
            f"Please run stage_02_tokenize.py first."
        )
    return pd.read_csv(path, dtype={'word': str}, keep_default_na=False)


def main():
    """
    Execute the complete tokenization pipeline.
    """
    print("\n" + "="*80)
    print("STAGE 2: TEXT TOKENIZATION")
    print("="*80 + "\n")

    print(f"Settings:")
    print(f"  Lowercase: {LOWERCASE}")
    print()

    CLEANED_DIR.mkdir(parents=True, exist_ok=True)
    FEATURES_DIR.mkdir(parents=True, exist_ok=True)

    print("Step 1: Aggregating responses by district")
    print("-" * 40)
    df_responses = load_cleaned_responses(CLEANED_RESPONSES)
    print(f"  Loaded {len(df_responses):,} responses")
    df_docs = agg_helper.aggregate_by_district(df_responses)
    df_docs.to_csv(DISTRICT_DOCUMENTS, index=False)
    print(f"  {len(df_docs):,} district documents saved to: {DISTRICT_DOCUMENTS}")

    print("\nStep 2: Tokenizing district documents")
    print("-" * 40)
    df_tokens = build_token_table(df_docs)
    df_tokens.to_csv(DISTRICT_TOKENS, index=False)
    print(f"  Tokens saved to: {DISTRICT_TOKENS}")

    token_counts = df_tokens.groupby(DISTRICT_KEY).size()

    print("\n" + "="*80)
    print("SUMMARY")
    print("="*80)
    print(f"\nDISTRICT DOCUMENTS:")
    print(f"  Total districts: {len(df_docs):,}")
    print(f"  Total tokens: {len(df_tokens):,}")
    if len(token_counts) > 0:
        print(f"  Average tokens per district: {token_counts.mean():.1f}")
        print(f"  Min tokens: {token_counts.min()}")
        print(f"  Max tokens: {token_counts.max()}")

    print(f"\nOutput files:")
    print(f"  {DISTRICT_DOCUMENTS}")
    print(f"  {DISTRICT_TOKENS}")

    print("\n" + "="*80)
    print("STAGE 2 COMPLETE")
    print("="*80 + "\n")


if __name__ == "__main__":
    main()
