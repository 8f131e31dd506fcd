"""Reference data for normalization.

Alias maps used by the rule-based normalizers when comparing names, street
addresses and organization roots, plus the re-verification cadence for each
resource field.
"""

# Street designators folded to the USPS abbreviation before comparing addresses.
STREET_SUFFIXES = {
    "street": "st",
    "str": "st",
    "avenue": "ave",
    "av": "ave",
    "boulevard": "blvd",
    "road": "rd",
    "drive": "dr",
    "lane": "ln",
    "court": "ct",
    "place": "pl",
    "parkway": "pkwy",
    "highway": "hwy",
    "terrace": "ter",
    "circle": "cir",
    "square": "sq",
    "suite": "ste",
    "apartment": "apt",
    "building": "bldg",
    "floor": "fl",
}

# Directional words folded the same way.
DIRECTIONALS = {
    "north": "n",
    "south": "s",
    "east": "e",
    "west": "w",
    "northeast": "ne",
    "northwest": "nw",
    "southeast": "se",
    "southwest": "sw",
}

# Full state and territory names folded to their USPS codes.
US_STATE_CODES = {
    "alabama": "al",
    "alaska": "ak",
    "arizona": "az",
    "arkansas": "ar",
    "california": "ca",
    "colorado": "co",
    "connecticut": "ct",
    "delaware": "de",
    "district of columbia": "dc",
    "florida": "fl",
    "georgia": "ga",
    "hawaii": "hi",
    "idaho": "id",
    "illinois": "il",
    "indiana": "in",
    "iowa": "ia",
    "kansas": "ks",
    "kentucky": "ky",
    "louisiana": "la",
    "maine": "me",
    "maryland": "md",
    "massachusetts": "ma",
    "michigan": "mi",
    "minnesota": "mn",
    "mississippi": "ms",
    "missouri": "mo",
    "montana": "mt",
    "nebraska": "ne",
    "nevada": "nv",
    "new hampshire": "nh",
    "new jersey": "nj",
    "new mexico": "nm",
    "new york": "ny",
    "north carolina": "nc",
    "north dakota": "nd",
    "ohio": "oh",
    "oklahoma": "ok",
    "oregon": "or",
    "pennsylvania": "pa",
    "rhode island": "ri",
    "south carolina": "sc",
    "south dakota": "sd",
    "tennessee": "tn",
    "texas": "tx",
    "utah": "ut",
    "vermont": "vt",
    "virginia": "va",
    "washington": "wa",
    "west virginia": "wv",
    "wisconsin": "wi",
    "wyoming": "wy",
    "puerto rico": "pr",
    "guam": "gu",
}

# Leading words ignored when comparing organization names.
NAME_STOPWORDS = frozenset({"the", "a", "an"})

# Days until a field should be re-verified after it changes.
FIELD_CADENCE_DAYS = {
    "phone": 30,
    "hours": 30,
    "website": 60,
    "email": 60,
    "services_offered": 60,
    "description": 90,
    "address": 180,
    "city": 180,
    "state": 180,
    "zip": 180,
    "name": 365,
    "primary_category": 365,
}
DEFAULT_CADENCE_DAYS = 90
UNCHANGED_CADENCE_DAYS = 30

# Method phrases accepted as proof that a source was consulted, mapped to the
# label recorded as ``verification_source``.
VERIFICATION_METHODS = {
    "verified via": "Verified via",
    "websearch": "WebSearch",
    "web search": "WebSearch",
    "webfetch": "WebFetch",
    "web fetch": "WebFetch",
    "google search": "WebSearch",
    "google maps": "Google Maps",
    "phone call": "Phone call",
    "called": "Phone call",
    "site visit": "Site visit",
    "visited": "Site visit",
}

# Top-level domains recognized when correction notes cite a bare domain.
SOURCE_TLDS = ("org", "com", "net", "gov", "edu", "us", "info")
