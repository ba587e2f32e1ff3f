"""
===============================================================================
FILE: stage_01_clean.py
PROJECT: District Sentiment Project
DATE: October 19, 2026
===============================================================================
PURPOSE:
    Load the raw survey export and reshape it into a clean table of
    open-ended responses. This is Stage 1 of the pipeline.

DESCRIPTION:
    1. Read the survey CSV (all columns as strings)
    2. Normalize column names to snake_case
    3. Select respondent id, likely council district and open responses
    4. Reshape to one row per (respondent, question, district, text)
    5. Parse the likely district into single / combined / unknown codes
    6. Trim whitespace and drop empty responses

    Rows with blank text are dropped silently; they are a data-quality
    issue, not an error.

INPUT FILES:
    - data/01_raw/survey_responses.csv

OUTPUT FILES:
    - data/02_cleaned/cleaned_responses.csv

USAGE:
    python code/stage_01_clean.py
===============================================================================
"""

import re
import pandas as pd
from dataclasses import dataclass
from config import (
    SURVEY_FILE, CLEANED_RESPONSES, CLEANED_DIR,
    ID_COLUMN, DISTRICT_COLUMN, RESPONSE_COLUMNS,
    TEXT_COLUMN, DISTRICT_KEY
)


SINGLE = "single"
COMBINED = "combined"
UNKNOWN = "unknown"

# Separators seen in multi-district answers ("5,7", "5 and 7", "5/7")
DISTRICT_SEPARATORS = re.compile(r"\s*(?:,|;|/|&|\+|\band\b)\s*", re.IGNORECASE)


@dataclass(frozen=True)
class DistrictCode:
    """Likely council district: a single district, several, or unknown."""
    kind: str
    districts: tuple = ()

    @property
    def is_single(self):
        return self.kind == SINGLE

    @property
    def district(self):
        return self.districts[0] if self.is_single else None


def parse_district_code(raw):
    """
    Parse a raw likely-district value into a DistrictCode.

    Examples:
        "12"     -> DistrictCode("single", (12,))
        "5,7"    -> DistrictCode("combined", (5, 7))
        "Unsure" -> DistrictCode("unknown")
    """
    if raw is None or pd.isna(raw):
        return DistrictCode(UNKNOWN)

    value = str(raw).strip()
    if not value:
        return DistrictCode(UNKNOWN)

    parts = [p for p in DISTRICT_SEPARATORS.split(value) if p]
    if not parts or not all(p.isascii() and p.isdigit() for p in parts):
        return DistrictCode(UNKNOWN)

    districts = tuple(int(p) for p in parts)
    if len(districts) == 1:
        return DistrictCode(SINGLE, districts)
    return DistrictCode(COMBINED, districts)


def clean_column_names(columns):
    """
    Normalize column names to snake_case.

    Lowercases, collapses runs of non-alphanumeric characters to a single
    underscore and strips leading/trailing underscores. Repeated names get
    a numeric suffix (_2, _3, ...).
    """
    cleaned = []
    seen = {}
    for col in columns:
        name = re.sub(r"[^0-9a-z]+", "_", str(col).strip().lower()).strip("_")
        name = name or "x"
        if name in seen:
            seen[name] += 1
            name = f"{name}_{seen[name]}"
        else:
            seen[name] = 1
        cleaned.append(name)
    return cleaned


def load_raw_responses(survey_path):
    """
    Load the raw survey export and normalize its column names.

    Args:
        survey_path: Path to the raw survey CSV

    Returns:
        DataFrame with every column read as string
    """
    print("Loading survey export...")
    df = pd.read_csv(survey_path, dtype=str, keep_default_na=False, na_values=[""])
    df.columns = clean_column_names(df.columns)
    print(f"  Loaded {len(df):,} rows, {len(df.columns):,} columns")
    return df


def extract_responses(df, id_column=ID_COLUMN, district_column=DISTRICT_COLUMN,
                      response_columns=None):
    """
    Reshape the survey table to one row per open-ended response.

    Args:
        df: Survey DataFrame with normalized column names
        id_column: Respondent identifier column
        district_column: Likely council district column
        response_columns: Open-response text columns to keep

    Returns:
        DataFrame with response_id, question, district_code, district_kind,
        district and text columns, in original row order

    Raises:
        ValueError: If a required column is missing
    """
    if response_columns is None:
        response_columns = RESPONSE_COLUMNS
    response_columns = list(response_columns)

    required = [id_column, district_column] + response_columns
    missing = [col for col in required if col not in df.columns]
    if missing:
        raise ValueError(f"Missing required columns: {missing}")

    print("Extracting open-ended responses...")
    subset = df[required].reset_index(drop=True)
    subset['row'] = range(len(subset))

    long_df = subset.melt(
        id_vars=['row', id_column, district_column],
        value_vars=response_columns,
        var_name='question',
        value_name=TEXT_COLUMN
    )
    # melt stacks column by column; restore row order, question order within a row
    question_order = {col: i for i, col in enumerate(response_columns)}
    long_df['question_order'] = long_df['question'].map(question_order)
    long_df = long_df.sort_values(['row', 'question_order'], kind='mergesort')

    long_df = long_df.rename(columns={
        id_column: 'response_id',
        district_column: 'district_code'
    })

    long_df[TEXT_COLUMN] = long_df[TEXT_COLUMN].fillna('').astype(str).str.strip()
    initial_count = len(long_df)
    long_df = long_df[long_df[TEXT_COLUMN].str.len() > 0].copy()
    print(f"  Dropped {initial_count - len(long_df):,} empty responses")

    codes = long_df['district_code'].map(parse_district_code)
    long_df['district_kind'] = codes.map(lambda c: c.kind)
    long_df[DISTRICT_KEY] = pd.array(
        [c.district for c in codes], dtype="Int64"
    )

    keep_cols = ['response_id', 'question', 'district_code',
                 'district_kind', DISTRICT_KEY, TEXT_COLUMN]
    long_df = long_df[keep_cols].reset_index(drop=True)

    print(f"  Kept {len(long_df):,} responses")
    return long_df


def load_cleaned_responses(path=CLEANED_RESPONSES):
    """Load the Stage 1 output with the expected dtypes."""
    if not path.exists():
        raise FileNotFoundError(
            f"Cleaned responses not found at {path}\n"
            f"Please run stage_01_clean.py first."
        )
    df = pd.read_csv(
        path,
        dtype={'response_id': str, 'question': str, 'district_code': str,
               'district_kind': str, TEXT_COLUMN: str},
        keep_default_na=False,
        na_values={DISTRICT_KEY: [""], 'district_code': [""]}
    )
    df[DISTRICT_KEY] = df[DISTRICT_KEY].astype("Int64")
    return df


def main():
    """Execute the complete Stage 1 cleaning pipeline."""
    print("\n" + "="*80)
    print("STAGE 1: RESPONSE CLEANING")
    print("="*80 + "\n")

    CLEANED_DIR.mkdir(parents=True, exist_ok=True)

    print("Step 1: Loading survey export")
    print("-" * 40)
    if not SURVEY_FILE.exists():
        raise FileNotFoundError(
            f"Survey export not found at {SURVEY_FILE}\n"
            f"Download and unzip the survey archive into {SURVEY_FILE.parent}."
        )
    df_raw = load_raw_responses(SURVEY_FILE)

    print("\nStep 2: Extracting responses")
    print("-" * 40)
    df_responses = extract_responses(df_raw)

    print("\nStep 3: Saving cleaned responses")
    print("-" * 40)
    df_responses.to_csv(CLEANED_RESPONSES, index=False)
    print(f"  Responses saved to: {CLEANED_RESPONSES}")

    print("\n" + "="*80)
    print("SUMMARY")
    print("="*80)
    print(f"\nRESPONSES:")
    print(f"  Total responses: {len(df_responses):,}")
    print(f"  Unique respondents: {df_responses['response_id'].nunique():,}")
    kind_counts = df_responses['district_kind'].value_counts()
    for kind in [SINGLE, COMBINED, UNKNOWN]:
        print(f"  {kind.capitalize()} district: {kind_counts.get(kind, 0):,}")

    print(f"\nOutput files:")
    print(f"  {CLEANED_RESPONSES}")

    print("\n" + "="*80)
    print("STAGE 1 COMPLETE")
    print("="*80 + "\n")


if __name__ == "__main__":
    main()
