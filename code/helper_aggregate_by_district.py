import pandas as pd
from config import (CLEANED_RESPONSES, DISTRICT_DOCUMENTS, CLEANED_DIR,
                    TEXT_COLUMN, DISTRICT_KEY)
from stage_01_clean import SINGLE, load_cleaned_responses


def aggregate_by_district(df: pd.DataFrame) -> pd.DataFrame:
    """
    Aggregates responses into one document per `district`:
      - Keeps only responses assigned to a single district
      - Concatenates `text` with a single space, in original row order
      - Returns one row per district, sorted by district
    """
    single = df[df['district_kind'] == SINGLE]

    grouped = (
        single
        .groupby(DISTRICT_KEY, as_index=False, sort=True)
        .agg({TEXT_COLUMN: ' '.join})
    )
    grouped[DISTRICT_KEY] = grouped[DISTRICT_KEY].astype(int)

    return grouped

def main():
    print("Loading cleaned responses...")
    df = load_cleaned_responses(CLEANED_RESPONSES)
    print("Aggregating by district...")
    df_aggregated = aggregate_by_district(df)
    print(f"  {len(df_aggregated):,} district documents")
    print("Saving aggregated DataFrame...")
    CLEANED_DIR.mkdir(parents=True, exist_ok=True)
    df_aggregated.to_csv(DISTRICT_DOCUMENTS, index=False)

if __name__ == "__main__":
    main()
