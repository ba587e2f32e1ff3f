"""
===============================================================================
FILE: stage_04_map.py
PROJECT: District Sentiment Project
DATE: October 19, 2026
===============================================================================
PURPOSE:
    Join district sentiment to council district polygons and draw a
    choropleth. This is Stage 4 of the pipeline.

DESCRIPTION:
    1. Load district sentiment from Stage 3
    2. Fetch council district boundaries (GeoJSON, cached after first run)
    3. Cast district codes to the boundary key's type and inner-merge
       (attribute join, not a spatial join)
    4. Rebuild a GeoDataFrame from the merged table
    5. Render the choropleth with legend, scale bar and title

    Districts missing from either side are dropped by the inner join.

INPUT FILES:
    - data/04_results/district_sentiment.csv
    - data/01_raw/council_districts.geojson (downloaded on first run)

OUTPUT FILES:
    - data/04_results/district_sentiment.geojson
    - figures/district_sentiment_map.png

DEPENDENCIES:
    - geopandas, shapely
    - matplotlib

USAGE:
    python code/stage_04_map.py
===============================================================================
"""

import geopandas as gpd
import matplotlib.pyplot as plt
import pandas as pd
from mpl_toolkits.axes_grid1.anchored_artists import AnchoredSizeBar
from config import (
    DISTRICT_SENTIMENT, SPATIAL_DISTRICT_SENTIMENT, SENTIMENT_MAP_FIGURE,
    RESULTS_DIR, FIGURES_DIR,
    DISTRICT_KEY, SENTIMENT_COLUMN, BOUNDARY_KEY,
    MAP_CRS, MAP_CMAP, MAP_TITLE, SCALE_BAR_METERS
)
from helper_fetch import fetch_district_boundaries
from stage_03_sentiment import load_district_sentiment


def join_boundaries(df_scores, boundaries, key=BOUNDARY_KEY):
    """
    Attach district polygons to district sentiment scores.

    Args:
        df_scores: DataFrame with district and sentiment columns
        boundaries: GeoDataFrame with one polygon per district
        key: Numeric district identifier column in `boundaries`

    Returns:
        GeoDataFrame with one row per district present on both sides

    Raises:
        KeyError: If `key` is not a boundary column
    """
    if key not in boundaries.columns:
        raise KeyError(f"Boundary key {key!r} not found in boundary columns "
                       f"{list(boundaries.columns)}")

    geometry_col = boundaries.geometry.name
    key_dtype = boundaries[key].dtype

    scores = df_scores.copy()
    if pd.api.types.is_numeric_dtype(key_dtype):
        scores[DISTRICT_KEY] = pd.to_numeric(scores[DISTRICT_KEY]).astype(key_dtype)
    else:
        scores[DISTRICT_KEY] = scores[DISTRICT_KEY].astype(str).astype(key_dtype)

    shapes = pd.DataFrame(boundaries[[key, geometry_col]])
    merged = pd.merge(scores, shapes, left_on=DISTRICT_KEY, right_on=key, how='inner')

    spatial = gpd.GeoDataFrame(merged, geometry=geometry_col, crs=boundaries.crs)
    spatial = spatial[spatial.geometry.notna() & ~spatial.geometry.is_empty]
    return spatial.reset_index(drop=True)


def add_scale_bar(ax, length_m=SCALE_BAR_METERS):
    """Draw a metric scale bar in the lower right corner."""
    label = f"{length_m / 1000:g} km" if length_m >= 1000 else f"{length_m:g} m"
    scale_bar = AnchoredSizeBar(
        ax.transData,
        length_m,
        label,
        loc="lower right",
        pad=0.5,
        frameon=False,
        size_vertical=length_m / 50
    )
    ax.add_artist(scale_bar)


def render_choropleth(gdf, output_path, column=SENTIMENT_COLUMN, cmap=MAP_CMAP,
                      title=MAP_TITLE, crs=MAP_CRS):
    """
    Fill each district by `column` on a continuous colour scale.

    Geographic data is projected to `crs` first so the scale bar is in
    metres; data without a CRS is drawn as-is and gets no scale bar.
    An empty table still produces a titled figure with a notice.
    """
    fig, ax = plt.subplots(figsize=(9, 9))
    if len(gdf) == 0:
        print("  Warning: no districts to map")
        ax.text(0.5, 0.5, "No districts to map", ha="center", va="center",
                transform=ax.transAxes)
        ax.set_title(title)
        ax.set_axis_off()
        output_path.parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(output_path, dpi=150, bbox_inches="tight")
        plt.close(fig)
        print(f"  Map saved to: {output_path}")
        return output_path

    if gdf.crs is not None and crs is not None:
        gdf = gdf.to_crs(crs)

    gdf.plot(
        column=column,
        cmap=cmap,
        linewidth=0.6,
        edgecolor="black",
        legend=True,
        legend_kwds={"label": "Mean sentiment", "shrink": 0.6},
        ax=ax
    )

    if DISTRICT_KEY in gdf.columns:
        for _, row in gdf.iterrows():
            point = row.geometry.representative_point()
            ax.annotate(str(row[DISTRICT_KEY]), xy=(point.x, point.y),
                        ha="center", va="center", fontsize=8)

    if gdf.crs is not None and gdf.crs.is_projected:
        add_scale_bar(ax)

    ax.set_title(title)
    ax.set_axis_off()

    output_path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(output_path, dpi=150, bbox_inches="tight")
    plt.close(fig)
    print(f"  Map saved to: {output_path}")
    return output_path


def main():
    """Execute the complete mapping stage."""
    print("\n" + "="*80)
    print("STAGE 4: DISTRICT MAP")
    print("="*80 + "\n")

    RESULTS_DIR.mkdir(parents=True, exist_ok=True)
    FIGURES_DIR.mkdir(parents=True, exist_ok=True)

    print("Step 1: Loading district sentiment and boundaries")
    print("-" * 40)
    df_scores = load_district_sentiment(DISTRICT_SENTIMENT)
    print(f"  Loaded {len(df_scores):,} district scores")
    boundaries = fetch_district_boundaries()

    print("\nStep 2: Joining scores to boundaries")
    print("-" * 40)
    spatial = join_boundaries(df_scores, boundaries)
    print(f"  Joined {len(spatial):,} districts "
          f"(scores: {len(df_scores):,}, polygons: {len(boundaries):,})")
    spatial.to_file(SPATIAL_DISTRICT_SENTIMENT, driver="GeoJSON")
    print(f"  Spatial table saved to: {SPATIAL_DISTRICT_SENTIMENT}")

    print("\nStep 3: Rendering choropleth")
    print("-" * 40)
    render_choropleth(spatial, SENTIMENT_MAP_FIGURE)

    print("\n" + "="*80)
    print("SUMMARY")
    print("="*80)
    print(f"\nMAP:")
    print(f"  Districts mapped: {len(spatial):,}")
    print(f"  CRS: {spatial.crs}")

    print(f"\nOutput files:")
    print(f"  {SPATIAL_DISTRICT_SENTIMENT}")
    print(f"  {SENTIMENT_MAP_FIGURE}")

    print("\n" + "="*80)
    print("STAGE 4 COMPLETE")
    print("="*80 + "\n")


if __name__ == "__main__":
    main()
