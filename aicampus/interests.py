"""
AICAMPUS Backend - Interest Classifier.
Maps a free-text interest description to the fixed set of interest tags
by case-insensitive keyword substring matching. Pure functions, no I/O.
"""

from aicampus.constants import DEFAULT_INTEREST_TAGS, INTEREST_TAGS

# Keywords are matched as substrings of the lowercased text (Indonesian + English)
INTEREST_KEYWORDS = {
    "technology": [
        "teknologi", "it", "programming", "coding", "software", "web", "ai",
        "machine learning", "data", "komputer", "developer",
    ],
    "business": [
        "bisnis", "business", "entrepreneur", "startup", "marketing",
        "manajemen", "wirausaha",
    ],
    "arts": [
        "seni", "art", "design", "creative", "kreatif", "musik", "film",
        "fotografi", "gambar",
    ],
    "social": [
        "sosial", "social", "volunteer", "komunitas", "charity", "kemanusiaan",
    ],
    "academic": [
        "akademik", "research", "penelitian", "science", "sains", "study",
        "belajar", "ilmu",
    ],
    "sports": [
        "olahraga", "sport", "fitness", "kesehatan", "health", "futsal",
        "basket", "lari",
    ],
    "leadership": [
        "leadership", "leader", "organisasi", "organization", "management",
        "pemimpin", "ketua",
    ],
    "environment": [
        "lingkungan", "environment", "sustainability", "eco", "green", "alam",
    ],
}

INTEREST_LABELS = {
    "technology": "Teknologi & IT",
    "business": "Bisnis & Entrepreneurship",
    "arts": "Seni & Kreatif",
    "social": "Sosial & Volunteering",
    "academic": "Akademik & Penelitian",
    "sports": "Olahraga & Kesehatan",
    "leadership": "Leadership & Organisasi",
    "environment": "Lingkungan & Sustainability",
}

# interest_groups.interest_category holds these stored values, not the tags
GROUP_CATEGORIES = {
    "technology": "teknologi",
    "business": "bisnis",
    "arts": "seni",
    "social": "sosial",
    "academic": "akademik",
    "sports": "olahraga",
    "leadership": "leadership",
    "environment": "lingkungan",
}
_TAGS_BY_CATEGORY = {category: tag for tag, category in GROUP_CATEGORIES.items()}


def classify_interests(text: str | None) -> list[str]:
    """
    Return the interest tags whose keywords appear in the text.
    Tags come back in INTEREST_TAGS order. Falls back to
    DEFAULT_INTEREST_TAGS when nothing matches (including empty input).
    """
    normalized = (text or "").lower().strip()

    detected = []
    if normalized:
        for tag in INTEREST_TAGS:
            if any(keyword in normalized for keyword in INTEREST_KEYWORDS[tag]):
                detected.append(tag)

    return detected if detected else list(DEFAULT_INTEREST_TAGS)


def interest_label(tag: str) -> str:
    """Human-readable label for a tag. Unknown tags are returned as-is."""
    return INTEREST_LABELS.get(tag, tag)


def group_categories(tags: list[str]) -> list[str]:
    return [GROUP_CATEGORIES.get(tag, tag) for tag in tags]


def tag_for_category(category: str) -> str:
    """Stored group category back to its tag. Values that already are tags pass through."""
    return _TAGS_BY_CATEGORY.get(category, category)


def list_interest_options() -> list[dict]:
    return [{"value": tag, "label": INTEREST_LABELS[tag]} for tag in INTEREST_TAGS]
