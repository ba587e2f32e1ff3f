# config.py
import os
import pandas as pd
from pathlib import Path
import pickle


# ============================================
# BASE PATHS
# ============================================
PROJECT_ROOT = Path(__file__).parent.parent
DATA_DIR = PROJECT_ROOT / "data"
FIGURES_DIR = PROJECT_ROOT / "figures"
CODE_DIR = PROJECT_ROOT / "code"

# ============================================
# RAW DATA PATHS
# ============================================
RAW_DIR = DATA_DIR / "01_raw"

# Survey export (downloaded and unzipped by hand)
SURVEY_FILE = RAW_DIR / "survey_responses.csv"

# Cached reference data
LEXICON_FILE = RAW_DIR / "afinn_165.tsv"
BOUNDARIES_FILE = RAW_DIR / "council_districts.geojson"

# ============================================
# REMOTE SOURCES
# ============================================
LEXICON_URL = os.environ.get(
    "LEXICON_URL",
    "https://raw.githubusercontent.com/fnielsen/afinn/master/afinn/data/AFINN-en-165.txt"
)

# GeoJSON feature collection, one polygon per council district. No default:
# set DISTRICT_BOUNDARIES_URL or place the file at BOUNDARIES_FILE.
DISTRICT_BOUNDARIES_URL = os.environ.get("DISTRICT_BOUNDARIES_URL")

REQUEST_TIMEOUT = 60

# ============================================
# PROCESSED DATA PATHS
# ============================================
CLEANED_DIR = DATA_DIR / "02_cleaned"
FEATURES_DIR = DATA_DIR / "03_features"
RESULTS_DIR = DATA_DIR / "04_results"

# Cleaned data
CLEANED_RESPONSES = CLEANED_DIR / "cleaned_responses.csv"
DISTRICT_DOCUMENTS = CLEANED_DIR / "district_documents.csv"

# Features
DISTRICT_TOKENS = FEATURES_DIR / "district_tokens.csv"
DISTRICT_DFM = FEATURES_DIR / "district_dfm.pkl"

# Results
DISTRICT_SENTIMENT = RESULTS_DIR / "district_sentiment.csv"
SPATIAL_DISTRICT_SENTIMENT = RESULTS_DIR / "district_sentiment.geojson"

# Figures
SENTIMENT_SCATTER_FIGURE = FIGURES_DIR / "district_sentiment_scatter.png"
SENTIMENT_MAP_FIGURE = FIGURES_DIR / "district_sentiment_map.png"

# ============================================
# DATA COLUMN NAMES
# ============================================
# Names after column normalization (see stage_01_clean.clean_column_names)
ID_COLUMN = "response_id"
DISTRICT_COLUMN = "likely_council_district"
RESPONSE_COLUMNS = ["growth_open_response"]

TEXT_COLUMN = "text"
DISTRICT_KEY = "district"
SENTIMENT_COLUMN = "sentiment"

# District identifier property in the boundary GeoJSON
BOUNDARY_KEY = os.environ.get("DISTRICT_BOUNDARY_KEY", "DISTRICT")

# ============================================
# TEXT PROCESSING PARAMETERS
# ============================================
# Lexicon words are lowercase, so tokens are folded before the join
LOWERCASE = True

# Stopwords are only removed for the keyness corpus
REMOVE_STOPWORDS = True

# "exclude" drops tokens missing from the lexicon, "zero" scores them as 0
UNMATCHED_TOKEN_POLICY = "exclude"

# Multi-word expressions collapsed into single tokens (e.g. horse_farms)
COMPOUND_PHRASES = [
    "horse farm",
    "horse farms",
    "urban service boundary",
    "urban service area",
    "rural service area",
    "affordable housing",
    "public transportation",
    "green space",
    "downtown lexington",
    "urban county council",
]

# ============================================
# KEYNESS PARAMETERS
# ============================================
TARGET_DISTRICT = 12
KEYNESS_MEASURE = "chi2"
KEYNESS_TOP_N = 20

# ============================================
# MAP PARAMETERS
# ============================================
# Projected CRS in metres so the scale bar is meaningful (UTM 16N)
MAP_CRS = "EPSG:32616"
SCALE_BAR_METERS = 5000
MAP_CMAP = "RdYlGn"
MAP_TITLE = "Mean lexicon sentiment by likely council district"


def keyness_results_path(target):
    return RESULTS_DIR / f"keyness_district_{target}.csv"


def keyness_figure_path(target):
    return FIGURES_DIR / f"keyness_district_{target}.png"


def save_pickle(obj, filepath):
    """Save object to pickle file"""
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)
    with open(filepath, 'wb') as f:
        pickle.dump(obj, f)
    print(f"Saved to {filepath}")


def create_sparse_dataframe(X, index, feature_names):
    """Create sparse DataFrame from scipy sparse matrix"""
    # Explicit fill value: newer pandas defaults float matrices to NaN fill
    return pd.DataFrame.sparse.from_spmatrix(
        X,
        index=index,
        columns=feature_names
    ).astype(pd.SparseDtype(X.dtype, 0))
