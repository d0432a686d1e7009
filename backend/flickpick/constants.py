from __future__ import annotations

# Streaming service ids the app knows about, mapped to TMDB watch-provider ids
PROVIDER_IDS: dict[str, int] = {
    "netflix": 8,
    "hulu": 15,
    "max": 1899,
    "prime": 119,
    "disney": 337,
    "peacock": 386,
    "paramount": 531,
    "apple": 350,
    "tubi": 73,
    "pluto": 300,
}

PROVIDERS_BY_TMDB_ID: dict[int, str] = {v: k for k, v in PROVIDER_IDS.items()}

GENRES = [
    "Action",
    "Comedy",
    "Drama",
    "Horror",
    "Thriller",
    "Sci-Fi",
    "Romance",
    "Documentary",
    "Animation",
    "Fantasy",
    "Mystery",
    "Crime",
]

# Used when the host picks a mood instead of explicit genres
MOOD_GENRES: dict[str, list[str]] = {
    "chill": ["Drama", "Romance"],
    "feelgood": ["Comedy", "Romance", "Animation"],
    "intense": ["Action", "Thriller", "Crime"],
    "mindbending": ["Sci-Fi", "Mystery", "Thriller"],
    "scary": ["Horror", "Thriller"],
    "funny": ["Comedy"],
    "tearjerker": ["Drama", "Romance"],
}

# (min, max) minutes, inclusive; None means open-ended
RUNTIME_RANGES: dict[str, tuple[int | None, int | None]] = {
    "short": (None, 90),
    "medium": (90, 120),
    "long": (120, None),
}

# (first year, last year), inclusive
RELEASE_YEAR_RANGES: dict[str, tuple[int | None, int | None]] = {
    "classic": (None, 1999),
    "2000s": (2000, 2009),
    "2010s": (2010, 2019),
    "recent": (2020, None),
}

CONTENT_TYPES = ("movies", "tv", "both")

# Titles per content type; "both" splits the budget and interleaves
CATALOG_SIZE = 20


def resolve_genres(genres: list[str], mood: str | None) -> list[str]:
    """Explicit genre picks win; otherwise fall back to the mood's genres."""
    if genres:
        return list(genres)
    if mood and mood in MOOD_GENRES:
        return list(MOOD_GENRES[mood])
    return []
