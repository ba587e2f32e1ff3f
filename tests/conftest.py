"""
Shared fixtures for the district sentiment tests.

Everything is built in memory: no survey export, lexicon download or
boundary service is needed.
"""

import matplotlib

matplotlib.use("Agg")

import geopandas as gpd
import pandas as pd
import pytest
from shapely.geometry import box


@pytest.fixture
def raw_survey():
    """Survey table as it looks after column normalization."""
    return pd.DataFrame({
        'response_id': ['1', '2', '3', '4', '5', '6'],
        'likely_council_district': ['12', '12', '5,7', '3', '3', 'Unsure'],
        'growth_open_response': [
            'too much development near the horse farms',
            'love the farms',
            'traffic is terrible',
            '   ',
            'Great parks, great neighbors!',
            'not sure where I live',
        ],
    })


@pytest.fixture
def lexicon():
    return pd.DataFrame({
        'word': ['love', 'development', 'great', 'terrible', 'bad'],
        'value': [3, -1, 3, -3, -3],
    })


@pytest.fixture
def boundaries():
    """Four square districts near Lexington, KY, keyed by DISTRICT."""
    polygons = []
    for i, district in enumerate([3, 5, 7, 12]):
        x0 = -84.60 + 0.05 * i
        polygons.append(box(x0, 38.00, x0 + 0.05, 38.05))
    return gpd.GeoDataFrame(
        {'DISTRICT': [3, 5, 7, 12], 'NAME': ['Three', 'Five', 'Seven', 'Twelve']},
        geometry=polygons,
        crs="EPSG:4326"
    )
