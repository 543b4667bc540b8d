"""Landslide catalog loading."""

import logging
import os
from typing import List, Optional

import pandas as pd

from nepal_landslides.geometry import BoundingBox, GeoPoint, LandslideRecord

logger = logging.getLogger(__name__)


def _clean_trigger(value) -> str:
    if value is None or pd.isna(value):
        return "None"
    text = str(value).strip()
    return text if text else "None"


def load_catalog(
    path: str,
    country: Optional[str] = None,
    bbox: Optional[BoundingBox] = None,
    latitude_column: str = "latitude",
    longitude_column: str = "longitude",
    trigger_column: str = "landslide_trigger",
    country_column: str = "country_name",
) -> List[LandslideRecord]:
    """
    Read the landslide catalog CSV into positive records (label 1).

    Rows without coordinates are dropped. When ``country`` is given, rows are
    kept only if ``country_column`` matches it (case-insensitive); when
    ``bbox`` is given, only rows inside it are kept.
    """
    if not os.path.exists(path):
        raise FileNotFoundError(f"Landslide catalog does not exist: {path}")
    df = pd.read_csv(path)
    logger.info(f"[load_catalog] Read {len(df)} rows from {path}")

    required = [latitude_column, longitude_column]
    missing = [c for c in required if c not in df.columns]
    if missing:
        raise ValueError(f"Catalog {path} is missing required columns: {missing}")

    if country is not None:
        if country_column not in df.columns:
            raise ValueError(
                f"Catalog {path} has no '{country_column}' column to filter by country"
            )
        names = df[country_column].astype(str).str.strip().str.lower()
        df = df[names == country.strip().lower()]
        logger.info(f"[load_catalog] {len(df)} rows in country '{country}'")

    df = df.assign(
        **{
            latitude_column: pd.to_numeric(df[latitude_column], errors="coerce"),
            longitude_column: pd.to_numeric(df[longitude_column], errors="coerce"),
        }
    ).dropna(subset=[latitude_column, longitude_column])

    if trigger_column in df.columns:
        triggers = df[trigger_column].map(_clean_trigger)
    else:
        logger.warning(f"[load_catalog] No '{trigger_column}' column, triggers set to 'None'")
        triggers = pd.Series("None", index=df.index)

    records = [
        LandslideRecord(
            point=GeoPoint(latitude=float(lat), longitude=float(lon)),
            label=1,
            trigger=trigger,
        )
        for lat, lon, trigger in zip(df[latitude_column], df[longitude_column], triggers)
    ]
    if bbox is not None:
        before = len(records)
        records = [r for r in records if bbox.contains(r.point)]
        logger.info(f"[load_catalog] Dropped {before - len(records)} rows outside {bbox.as_list()}")

    logger.info(f"[load_catalog] Loaded {len(records)} landslide records")
    return records
