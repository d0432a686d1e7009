"""
Turn a raw TMDB export into a catalog file CsvCatalogBuilder can read.

    python -m flickpick.scripts.prepare_catalog raw_titles.csv catalog_prepared.csv

Input columns (TMDB dataset dumps use either spelling): id, title or name,
genres, runtime or episode_run_time, release_date or first_air_date,
vote_average, overview, poster_path, providers, and an optional type
("movie" / "tv"). Rows without a streaming provider are dropped.
"""

import json
import sys

import pandas as pd

from flickpick.constants import GENRES, PROVIDER_IDS
from flickpick.services.csv_catalog_service import CATALOG_COLUMNS, LIST_SEPARATOR
from flickpick.services.tmdb_service import TMDB_GENRE_NAMES, TMDB_IMAGE_BASE

# -------------------------------
# CONFIG
# -------------------------------
DATASET_PATH = "./raw_titles.csv"
OUTPUT_PATH = "./catalog_prepared.csv"

PROVIDER_NAMES = {
    "netflix": "netflix",
    "hulu": "hulu",
    "max": "max",
    "hbo max": "max",
    "amazon prime video": "prime",
    "prime video": "prime",
    "disney plus": "disney",
    "disney+": "disney",
    "peacock": "peacock",
    "peacock premium": "peacock",
    "paramount plus": "paramount",
    "paramount+": "paramount",
    "apple tv plus": "apple",
    "apple tv+": "apple",
    "tubi tv": "tubi",
    "tubi": "tubi",
    "pluto tv": "pluto",
}


# -------------------------------
# HELPERS
# -------------------------------
def to_name_list(raw) -> list[str]:
    """Accepts JSON lists of {"name": ...}, JSON string lists, or comma/pipe text."""
    if isinstance(raw, list):
        items = raw
    elif not isinstance(raw, str) or not raw.strip():
        return []
    else:
        text = raw.strip()
        if text.startswith("["):
            try:
                items = json.loads(text)
            except ValueError:
                items = [p.strip().strip("'\"") for p in text[1:-1].split(",")]
        else:
            sep = LIST_SEPARATOR if LIST_SEPARATOR in text else ","
            items = text.split(sep)

    names = []
    for item in items:
        name = item.get("name") if isinstance(item, dict) else item
        if isinstance(name, str) and name.strip():
            names.append(name.strip())
    return names


def normalize_genres(raw) -> list[str]:
    names = [TMDB_GENRE_NAMES.get(name, name) for name in to_name_list(raw)]
    known = []
    for name in names:
        if name in GENRES and name not in known:
            known.append(name)
    return known


def normalize_providers(raw) -> list[str]:
    found = []
    for name in to_name_list(raw):
        app_id = PROVIDER_NAMES.get(name.lower())
        if app_id is None and name.lower() in PROVIDER_IDS:
            app_id = name.lower()
        if app_id and app_id not in found:
            found.append(app_id)
    return found


def first_column(df: pd.DataFrame, *names: str) -> pd.Series:
    for name in names:
        if name in df.columns:
            return df[name]
    return pd.Series([None] * len(df), index=df.index)


def prepare_frame(raw: pd.DataFrame) -> pd.DataFrame:
    dates = first_column(raw, "release_date", "first_air_date").astype(str)
    content_type = first_column(raw, "type", "media_type").fillna("movie").astype(str).str.lower()
    poster_path = first_column(raw, "poster_path")

    df = pd.DataFrame(
        {
            "tmdb_id": pd.to_numeric(first_column(raw, "id", "tmdb_id"), errors="coerce").astype("Int64"),
            "title": first_column(raw, "title", "name").fillna("").astype(str).str.strip(),
            "content_type": content_type.map(lambda t: "tv" if t in ("tv", "show", "series") else "movies"),
            "genres": first_column(raw, "genres").apply(lambda g: LIST_SEPARATOR.join(normalize_genres(g))),
            "runtime": pd.to_numeric(first_column(raw, "runtime", "episode_run_time"), errors="coerce")
            .fillna(0)
            .round()
            .astype(int),
            "release_year": pd.to_numeric(dates.str[:4], errors="coerce").fillna(0).astype(int),
            "tmdb_rating": pd.to_numeric(first_column(raw, "vote_average"), errors="coerce").fillna(0.0).round(1),
            "available_on": first_column(raw, "providers", "watch_providers").apply(
                lambda p: LIST_SEPARATOR.join(normalize_providers(p))
            ),
            "poster_url": poster_path.apply(lambda p: f"{TMDB_IMAGE_BASE}{p}" if isinstance(p, str) and p else ""),
            "synopsis": first_column(raw, "overview").fillna("").astype(str),
        }
    )

    df = df[(df["title"] != "") & (df["available_on"] != "")]
    df = df[~(df["tmdb_id"].notna() & df.duplicated(subset=["tmdb_id", "content_type"]))]
    return df[CATALOG_COLUMNS].reset_index(drop=True)


# -------------------------------
# MAIN EXPORT
# -------------------------------
def export_catalog(dataset_path: str = DATASET_PATH, output_path: str = OUTPUT_PATH) -> int:
    raw = pd.read_csv(dataset_path)
    print(f"Loaded {len(raw)} rows from {dataset_path}")

    prepared = prepare_frame(raw)
    prepared.to_csv(output_path, index=False)

    print(f"Export complete: {len(prepared)} titles -> {output_path}")
    return len(prepared)


if __name__ == "__main__":
    args = sys.argv[1:]
    export_catalog(*args[:2])
