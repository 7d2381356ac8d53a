"""
POI Types Configuration for place search
Closed category enumeration plus the brand, cuisine and keyword tables used to
normalize free text onto it.
"""

from typing import Dict, List, Optional


# Closed POI category enumeration
POI_CATEGORIES = {
    "restaurant",
    "cafe",
    "grocery",
    "pharmacy",
    "hospital",
    "school",
    "park",
    "gym",
    "bank",
    "atm",
    "gas_station",
    "shopping",
    "entertainment",
    "transport",
    "accommodation",
    "other",
}

# Brand and generic-store names -> category
BRAND_TO_CATEGORY: Dict[str, str] = {
    "starbucks": "cafe",
    "coffee shop": "cafe",
    "coffee shops": "cafe",
    "dunkin": "cafe",
    "dunkin donuts": "cafe",
    "peet's": "cafe",
    "peets": "cafe",
    "mcdonald's": "restaurant",
    "mcdonalds": "restaurant",
    "burger king": "restaurant",
    "wendy's": "restaurant",
    "wendys": "restaurant",
    "cvs": "pharmacy",
    "walgreens": "pharmacy",
    "rite aid": "pharmacy",
    "whole foods": "grocery",
    "safeway": "grocery",
    "walmart": "grocery",
    "target": "shopping",
    "mall": "shopping",
    "gas station": "gas_station",
    "gas": "gas_station",
    "shell": "gas_station",
    "exxon": "gas_station",
    "chevron": "gas_station",
    "bp": "gas_station",
    "clinic": "hospital",
    "drugstore": "pharmacy",
    "atm machine": "atm",
    "coffee": "cafe",
    "grocery store": "grocery",
    "supermarket": "grocery",
    "store": "shopping",
    "shop": "shopping",
}

# Cuisine words -> category
CUISINE_TO_CATEGORY: Dict[str, str] = {
    "italian": "restaurant",
    "mexican": "restaurant",
    "chinese": "restaurant",
    "japanese": "restaurant",
    "indian": "restaurant",
    "thai": "restaurant",
    "french": "restaurant",
    "american": "restaurant",
    "mediterranean": "restaurant",
    "pizza": "restaurant",
    "burger": "restaurant",
    "sushi": "restaurant",
    "seafood": "restaurant",
    "steakhouse": "restaurant",
    "cafe": "cafe",
    "coffee": "cafe",
    "bakery": "cafe",
    "bar": "restaurant",
    "pub": "restaurant",
    "food court": "restaurant",
    "foodcourt": "restaurant",
}

# Cuisine tokens that may be embedded in a category phrase ("mexican restaurant")
CUISINE_TOKENS: List[str] = [
    "mexican",
    "italian",
    "chinese",
    "japanese",
    "thai",
    "indian",
    "french",
    "american",
    "mediterranean",
]

# Generic food words that always mean "restaurant"
FOOD_WORDS = {"food", "bite", "quick bite", "food court"}

# Keywords for text matching, ordered by specificity within each category
POI_TYPE_KEYWORDS: Dict[str, List[str]] = {
    "restaurant": ["restaurant", "food", "eat", "dining", "meal", "bite", "lunch", "dinner"],
    "cafe": ["coffee shop", "coffee", "cafe", "starbucks", "espresso", "tea", "drink"],
    "grocery": ["grocery", "supermarket", "whole foods", "safeway"],
    "pharmacy": ["pharmacy", "pharmacies", "drugstore", "drug", "cvs", "walgreens", "medicine"],
    "hospital": ["hospital", "clinic", "emergency room", "urgent care"],
    "school": ["school", "university", "college"],
    "park": ["park", "playground", "garden"],
    "gym": ["gym", "fitness", "workout"],
    "bank": ["bank"],
    "atm": ["atm", "cash machine"],
    "gas_station": ["gas station", "gas", "fuel", "petrol", "station"],
    "shopping": ["shopping", "mall", "store", "shop"],
    "entertainment": ["cinema", "movie", "theater", "theatre", "nightclub"],
    "transport": ["bus station", "train station", "bus stop", "subway"],
    "accommodation": ["hotel", "hostel", "motel"],
}

# Overpass QL selectors per category
OVERPASS_TAGS: Dict[str, str] = {
    "restaurant": "node[amenity=restaurant]",
    "cafe": "node[amenity=cafe]",
    "grocery": 'node[shop~"supermarket|convenience|grocery"]',
    "pharmacy": "node[amenity=pharmacy]",
    "hospital": "node[amenity=hospital]",
    "school": "node[amenity=school]",
    "park": "node[leisure=park]",
    "gym": 'node[leisure~"fitness_centre|sports_centre"]',
    "bank": "node[amenity=bank]",
    "atm": "node[amenity=atm]",
    "gas_station": "node[amenity=fuel]",
    "shopping": "node[shop]",
    "entertainment": 'node[amenity~"cinema|theatre|nightclub"]',
    "transport": 'node[amenity~"bus_station|train_station"]',
    "accommodation": 'node[tourism~"hotel|hostel|motel"]',
    "other": "node[amenity]",
}


def is_valid_category(category: str) -> bool:
    """Check if a category belongs to the closed enumeration."""
    return category in POI_CATEGORIES


def normalize_category(value: Optional[str]) -> Optional[str]:
    """Map a category, brand or cuisine word onto the enumeration, or None."""
    if not value or not isinstance(value, str):
        return None
    key = value.strip().lower()
    if key in POI_CATEGORIES:
        return key
    if key in BRAND_TO_CATEGORY:
        return BRAND_TO_CATEGORY[key]
    if key in CUISINE_TO_CATEGORY:
        return CUISINE_TO_CATEGORY[key]
    if key in FOOD_WORDS or "restaurant" in key:
        return "restaurant"
    # Plurals ("hospitals", "atms")
    if key.endswith("s") and key[:-1] in POI_CATEGORIES:
        return key[:-1]
    return None


def get_keywords_for_category(category: str) -> List[str]:
    """Get the search terms for a category, the category name itself first."""
    words = [category.replace("_", " ")]
    for word in POI_TYPE_KEYWORDS.get(category, []):
        if word not in words:
            words.append(word)
    return words


def get_overpass_selector(category: str) -> str:
    return OVERPASS_TAGS.get(category, OVERPASS_TAGS["other"])


def build_keyword_index() -> Dict[str, str]:
    """Every known term (keyword, brand, cuisine, food word) -> category"""
    index: Dict[str, str] = {}
    for category, words in POI_TYPE_KEYWORDS.items():
        for word in words:
            index.setdefault(word, category)
    for table in (BRAND_TO_CATEGORY, CUISINE_TO_CATEGORY):
        for word, category in table.items():
            index.setdefault(word, category)
    for word in FOOD_WORDS:
        index.setdefault(word, "restaurant")
    for category in POI_CATEGORIES - {"other"}:
        index.setdefault(category.replace("_", " "), category)
    return index
