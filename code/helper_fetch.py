import geopandas as gpd
import pandas as pd
import requests
from pathlib import Path
from config import (LEXICON_URL, LEXICON_FILE, DISTRICT_BOUNDARIES_URL,
                    BOUNDARIES_FILE, REQUEST_TIMEOUT)

LEXICON_MIN = -5
LEXICON_MAX = 5


def download_file(url, target_path, timeout=REQUEST_TIMEOUT):
    """
    Download `url` to `target_path` unless it is already cached.

    One request, no retries: an HTTP or connection error propagates and
    stops the run.
    """
    target_path = Path(target_path)
    if target_path.exists():
        print(f"  Using cached copy at {target_path}")
        return target_path

    print(f"  Downloading from: {url}")
    response = requests.get(url, timeout=timeout)
    response.raise_for_status()

    target_path.parent.mkdir(parents=True, exist_ok=True)
    with open(target_path, 'wb') as f:
        f.write(response.content)
    print(f"  Saved to {target_path}")
    return target_path


def read_lexicon(source):
    """
    Parse a word<TAB>score sentiment lexicon (AFINN format).

    Args:
        source: Path or file-like object

    Returns:
        DataFrame with word and value columns, one row per word

    Raises:
        ValueError: If any score falls outside [-5, 5]
    """
    lexicon = pd.read_csv(
        source,
        sep="\t",
        header=None,
        names=['word', 'value'],
        dtype={'word': str, 'value': int},
        quoting=3,
        keep_default_na=False
    )

    out_of_range = lexicon[(lexicon['value'] < LEXICON_MIN) | (lexicon['value'] > LEXICON_MAX)]
    if len(out_of_range) > 0:
        raise ValueError(
            f"Lexicon scores must lie in [{LEXICON_MIN}, {LEXICON_MAX}]; "
            f"found {len(out_of_range):,} entries outside, e.g. "
            f"{out_of_range.iloc[0]['word']!r}={out_of_range.iloc[0]['value']}"
        )

    lexicon = lexicon.drop_duplicates(subset=['word'], keep='first')
    return lexicon.reset_index(drop=True)


def fetch_lexicon(url=LEXICON_URL, cache_path=LEXICON_FILE):
    """Fetch (once) and load the sentiment lexicon."""
    print("Loading sentiment lexicon...")
    path = download_file(url, cache_path)
    lexicon = read_lexicon(path)
    print(f"  Loaded {len(lexicon):,} lexicon entries")
    return lexicon


def fetch_district_boundaries(url=DISTRICT_BOUNDARIES_URL, cache_path=BOUNDARIES_FILE):
    """
    Fetch (once) and load the council district polygons.

    Raises:
        ValueError: If no URL is configured and nothing is cached
    """
    print("Loading district boundaries...")
    if not url and not Path(cache_path).exists():
        raise ValueError(
            f"No district boundary source configured.\n"
            f"Set DISTRICT_BOUNDARIES_URL or place the GeoJSON at {cache_path}."
        )
    path = download_file(url, cache_path)
    boundaries = gpd.read_file(path)
    print(f"  Loaded {len(boundaries):,} district polygons")
    return boundaries
