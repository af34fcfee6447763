"""
Geography profiles and location normalization.
A profile is a catalog of canonical location codes, display names and region
membership, so the same engine can serve US states, Indian states, Canadian
provinces or world countries.
"""
import logging
from dataclasses import dataclass, field, replace
from typing import Iterable

logger = logging.getLogger(__name__)


MAP_NONE = "none"
MAP_REGIONAL = "regional"
MAP_GLOBAL = "global"

# Minimum share of sampled values a profile must normalize to be detected
DETECTION_THRESHOLD = 0.3
DETECTION_SAMPLE_SIZE = 200


@dataclass(frozen=True)
class GeographyProfile:
    id: str
    display_name: str
    location_label: str
    region_label: str
    locations: dict[str, str]  # code -> display name
    name_to_code: dict[str, str]  # lowercase name/alias -> code
    regions: dict[str, tuple[str, ...]]  # region name -> member codes
    map_kind: str = MAP_NONE
    topojson_url: str | None = field(default=None, compare=False)

    @property
    def offers_map(self) -> bool:
        return self.map_kind != MAP_NONE

    @property
    def region_names(self) -> list[str]:
        return list(self.regions.keys())


def _build_name_to_code(locations: dict[str, str], aliases: dict[str, str] | None = None) -> dict[str, str]:
    result = {name.lower(): code for code, name in locations.items()}
    for alias, code in (aliases or {}).items():
        result[alias.lower()] = code
    return result


def build_profile(
    profile_id: str,
    display_name: str,
    locations: dict[str, str],
    regions: dict[str, Iterable[str]],
    map_kind: str,
    location_label: str = "Locations",
    region_label: str = "Regions",
    aliases: dict[str, str] | None = None,
    topojson_url: str | None = None,
) -> GeographyProfile:
    return GeographyProfile(
        id=profile_id,
        display_name=display_name,
        location_label=location_label,
        region_label=region_label,
        locations=dict(locations),
        name_to_code=_build_name_to_code(locations, aliases),
        regions={name: tuple(codes) for name, codes in regions.items()},
        map_kind=map_kind,
        topojson_url=topojson_url,
    )


# ============================================================================
# United States
# ============================================================================

US_LOCATIONS = {
    'AL': 'Alabama', 'AK': 'Alaska', 'AZ': 'Arizona', 'AR': 'Arkansas',
    'CA': 'California', 'CO': 'Colorado', 'CT': 'Connecticut', 'DE': 'Delaware',
    'FL': 'Florida', 'GA': 'Georgia', 'HI': 'Hawaii', 'ID': 'Idaho',
    'IL': 'Illinois', 'IN': 'Indiana', 'IA': 'Iowa', 'KS': 'Kansas',
    'KY': 'Kentucky', 'LA': 'Louisiana', 'ME': 'Maine', 'MD': 'Maryland',
    'MA': 'Massachusetts', 'MI': 'Michigan', 'MN': 'Minnesota', 'MS': 'Mississippi',
    'MO': 'Missouri', 'MT': 'Montana', 'NE': 'Nebraska', 'NV': 'Nevada',
    'NH': 'New Hampshire', 'NJ': 'New Jersey', 'NM': 'New Mexico', 'NY': 'New York',
    'NC': 'North Carolina', 'ND': 'North Dakota', 'OH': 'Ohio', 'OK': 'Oklahoma',
    'OR': 'Oregon', 'PA': 'Pennsylvania', 'RI': 'Rhode Island', 'SC': 'South Carolina',
    'SD': 'South Dakota', 'TN': 'Tennessee', 'TX': 'Texas', 'UT': 'Utah',
    'VT': 'Vermont', 'VA': 'Virginia', 'WA': 'Washington', 'WV': 'West Virginia',
    'WI': 'Wisconsin', 'WY': 'Wyoming', 'DC': 'District of Columbia',
}

# US Census regions
US_REGIONS = {
    'Northeast': ['CT', 'ME', 'MA', 'NH', 'RI', 'VT', 'NJ', 'NY', 'PA'],
    'Midwest': ['IL', 'IN', 'MI', 'OH', 'WI', 'IA', 'KS', 'MN', 'MO', 'NE', 'ND', 'SD'],
    'South': ['DE', 'FL', 'GA', 'MD', 'NC', 'SC', 'VA', 'DC', 'WV', 'AL', 'KY', 'MS',
              'TN', 'AR', 'LA', 'OK', 'TX'],
    'West': ['AZ', 'CO', 'ID', 'MT', 'NV', 'NM', 'UT', 'WY', 'AK', 'CA', 'HI', 'OR', 'WA'],
}

US_ALIASES = {
    'Washington DC': 'DC', 'Washington D.C.': 'DC', 'D.C.': 'DC',
}


# ============================================================================
# India
# ============================================================================

INDIA_LOCATIONS = {
    'AN': 'Andaman and Nicobar Islands', 'AP': 'Andhra Pradesh', 'AR': 'Arunachal Pradesh',
    'AS': 'Assam', 'BR': 'Bihar', 'CH': 'Chandigarh', 'CT': 'Chhattisgarh',
    'DD': 'Dadra and Nagar Haveli and Daman and Diu', 'DL': 'Delhi', 'GA': 'Goa',
    'GJ': 'Gujarat', 'HR': 'Haryana', 'HP': 'Himachal Pradesh', 'JK': 'Jammu and Kashmir',
    'JH': 'Jharkhand', 'KA': 'Karnataka', 'KL': 'Kerala', 'LA': 'Ladakh',
    'LD': 'Lakshadweep', 'MP': 'Madhya Pradesh', 'MH': 'Maharashtra', 'MN': 'Manipur',
    'ML': 'Meghalaya', 'MZ': 'Mizoram', 'NL': 'Nagaland', 'OR': 'Odisha',
    'PY': 'Puducherry', 'PB': 'Punjab', 'RJ': 'Rajasthan', 'SK': 'Sikkim',
    'TN': 'Tamil Nadu', 'TG': 'Telangana', 'TR': 'Tripura', 'UP': 'Uttar Pradesh',
    'UK': 'Uttarakhand', 'WB': 'West Bengal',
}

# MP and CT are listed under both West and Central; region_of resolves to West.
INDIA_REGIONS = {
    'North': ['DL', 'HR', 'HP', 'JK', 'PB', 'RJ', 'UP', 'UK', 'CH', 'LA'],
    'South': ['AP', 'KA', 'KL', 'TN', 'TG', 'PY', 'AN', 'LD'],
    'East': ['BR', 'JH', 'OR', 'WB'],
    'West': ['GA', 'GJ', 'MH', 'MP', 'CT', 'DD'],
    'Central': ['MP', 'CT'],
    'Northeast': ['AR', 'AS', 'MN', 'ML', 'MZ', 'NL', 'SK', 'TR'],
}

INDIA_ALIASES = {
    'Orissa': 'OR', 'Pondicherry': 'PY', 'Uttaranchal': 'UK', 'New Delhi': 'DL',
}


# ============================================================================
# United Kingdom
# ============================================================================

UK_LOCATIONS = {
    'ENG': 'England', 'SCT': 'Scotland', 'WLS': 'Wales', 'NIR': 'Northern Ireland',
}

UK_REGIONS = {
    'England': ['ENG'],
    'Scotland': ['SCT'],
    'Wales': ['WLS'],
    'Northern Ireland': ['NIR'],
}


# ============================================================================
# Canada
# ============================================================================

CANADA_LOCATIONS = {
    'AB': 'Alberta', 'BC': 'British Columbia', 'MB': 'Manitoba',
    'NB': 'New Brunswick', 'NL': 'Newfoundland and Labrador', 'NS': 'Nova Scotia',
    'NT': 'Northwest Territories', 'NU': 'Nunavut', 'ON': 'Ontario',
    'PE': 'Prince Edward Island', 'QC': 'Quebec', 'SK': 'Saskatchewan', 'YT': 'Yukon',
}

CANADA_REGIONS = {
    'Atlantic': ['NB', 'NL', 'NS', 'PE'],
    'Central': ['ON', 'QC'],
    'Prairies': ['AB', 'MB', 'SK'],
    'West Coast': ['BC'],
    'North': ['NT', 'NU', 'YT'],
}

# Common variations seen in CRM exports
CANADA_ALIASES = {
    'Newfoundland': 'NL', 'Labrador': 'NL', 'NF': 'NL',
    'PEI': 'PE', 'Québec': 'QC', 'PQ': 'QC', 'Yukon Territory': 'YT',
}


# ============================================================================
# World (countries)
# ============================================================================

WORLD_LOCATIONS = {
    # North America
    'US': 'United States', 'CA': 'Canada', 'MX': 'Mexico', 'GT': 'Guatemala', 'CU': 'Cuba',
    'HT': 'Haiti', 'DO': 'Dominican Republic', 'HN': 'Honduras', 'NI': 'Nicaragua',
    'CR': 'Costa Rica', 'PA': 'Panama', 'JM': 'Jamaica', 'TT': 'Trinidad and Tobago',
    # Europe
    'GB': 'United Kingdom', 'FR': 'France', 'DE': 'Germany', 'IT': 'Italy', 'ES': 'Spain',
    'PT': 'Portugal', 'NL': 'Netherlands', 'BE': 'Belgium', 'CH': 'Switzerland',
    'AT': 'Austria', 'SE': 'Sweden', 'NO': 'Norway', 'DK': 'Denmark', 'FI': 'Finland',
    'IE': 'Ireland', 'PL': 'Poland', 'CZ': 'Czech Republic', 'RO': 'Romania',
    'GR': 'Greece', 'HU': 'Hungary', 'SK': 'Slovakia', 'BG': 'Bulgaria',
    'HR': 'Croatia', 'RS': 'Serbia', 'UA': 'Ukraine', 'RU': 'Russia',
    'LT': 'Lithuania', 'LV': 'Latvia', 'EE': 'Estonia', 'SI': 'Slovenia',
    'BA': 'Bosnia and Herzegovina', 'MK': 'North Macedonia', 'AL': 'Albania',
    'ME': 'Montenegro', 'MD': 'Moldova', 'BY': 'Belarus', 'IS': 'Iceland', 'LU': 'Luxembourg',
    'MT': 'Malta', 'CY': 'Cyprus',
    # Asia
    'IN': 'India', 'CN': 'China', 'JP': 'Japan', 'KR': 'South Korea', 'KP': 'North Korea',
    'ID': 'Indonesia', 'TH': 'Thailand', 'VN': 'Vietnam', 'PH': 'Philippines',
    'MY': 'Malaysia', 'SG': 'Singapore', 'TW': 'Taiwan', 'BD': 'Bangladesh',
    'PK': 'Pakistan', 'LK': 'Sri Lanka', 'NP': 'Nepal', 'MM': 'Myanmar',
    'KH': 'Cambodia', 'LA': 'Laos', 'MN': 'Mongolia', 'AF': 'Afghanistan',
    'UZ': 'Uzbekistan', 'KZ': 'Kazakhstan', 'TM': 'Turkmenistan', 'KG': 'Kyrgyzstan',
    'TJ': 'Tajikistan', 'BN': 'Brunei',
    # Oceania
    'AU': 'Australia', 'NZ': 'New Zealand', 'PG': 'Papua New Guinea', 'FJ': 'Fiji',
    # South America
    'BR': 'Brazil', 'AR': 'Argentina', 'CL': 'Chile', 'CO': 'Colombia',
    'PE': 'Peru', 'VE': 'Venezuela', 'EC': 'Ecuador', 'UY': 'Uruguay',
    'PY': 'Paraguay', 'BO': 'Bolivia', 'GY': 'Guyana', 'SR': 'Suriname',
    # Africa
    'ZA': 'South Africa', 'NG': 'Nigeria', 'KE': 'Kenya', 'EG': 'Egypt',
    'GH': 'Ghana', 'ET': 'Ethiopia', 'TZ': 'Tanzania', 'MA': 'Morocco',
    'DZ': 'Algeria', 'TN': 'Tunisia', 'LY': 'Libya', 'SD': 'Sudan',
    'AO': 'Angola', 'MZ': 'Mozambique', 'MG': 'Madagascar', 'CM': 'Cameroon',
    'CI': "Côte d'Ivoire", 'NE': 'Niger', 'BF': 'Burkina Faso', 'ML': 'Mali',
    'SN': 'Senegal', 'ZW': 'Zimbabwe', 'ZM': 'Zambia', 'MW': 'Malawi',
    'RW': 'Rwanda', 'UG': 'Uganda', 'CD': 'Congo', 'CG': 'Republic of Congo',
    'BW': 'Botswana', 'NA': 'Namibia', 'LS': 'Lesotho', 'SZ': 'Eswatini',
    'GM': 'Gambia', 'GN': 'Guinea', 'SL': 'Sierra Leone', 'LR': 'Liberia',
    'TG': 'Togo', 'BJ': 'Benin', 'MR': 'Mauritania', 'ER': 'Eritrea',
    'DJ': 'Djibouti', 'SO': 'Somalia', 'SS': 'South Sudan', 'CF': 'Central African Republic',
    'TD': 'Chad', 'GA': 'Gabon', 'GQ': 'Equatorial Guinea', 'MU': 'Mauritius',
    # Middle East
    'AE': 'United Arab Emirates', 'SA': 'Saudi Arabia', 'IL': 'Israel',
    'TR': 'Turkey', 'QA': 'Qatar', 'KW': 'Kuwait', 'BH': 'Bahrain',
    'OM': 'Oman', 'JO': 'Jordan', 'LB': 'Lebanon', 'IQ': 'Iraq', 'IR': 'Iran',
    'YE': 'Yemen', 'SY': 'Syria', 'PS': 'Palestine', 'GE': 'Georgia', 'AM': 'Armenia',
    'AZ': 'Azerbaijan',
}

WORLD_REGIONS = {
    'North America': ['US', 'CA', 'MX', 'GT', 'CU', 'HT', 'DO', 'HN', 'NI', 'CR', 'PA', 'JM', 'TT'],
    'Europe': ['GB', 'FR', 'DE', 'IT', 'ES', 'PT', 'NL', 'BE', 'CH', 'AT', 'SE', 'NO', 'DK', 'FI',
               'IE', 'PL', 'CZ', 'RO', 'GR', 'HU', 'SK', 'BG', 'HR', 'RS', 'UA', 'RU', 'LT', 'LV',
               'EE', 'SI', 'BA', 'MK', 'AL', 'ME', 'MD', 'BY', 'IS', 'LU', 'MT', 'CY'],
    'Asia': ['IN', 'CN', 'JP', 'KR', 'KP', 'ID', 'TH', 'VN', 'PH', 'MY', 'SG', 'TW', 'BD', 'PK',
             'LK', 'NP', 'MM', 'KH', 'LA', 'MN', 'AF', 'UZ', 'KZ', 'TM', 'KG', 'TJ', 'BN'],
    'Oceania': ['AU', 'NZ', 'PG', 'FJ'],
    'South America': ['BR', 'AR', 'CL', 'CO', 'PE', 'VE', 'EC', 'UY', 'PY', 'BO', 'GY', 'SR'],
    'Africa': ['ZA', 'NG', 'KE', 'EG', 'GH', 'ET', 'TZ', 'MA', 'DZ', 'TN', 'LY', 'SD', 'AO', 'MZ',
               'MG', 'CM', 'CI', 'NE', 'BF', 'ML', 'SN', 'ZW', 'ZM', 'MW', 'RW', 'UG', 'CD', 'CG',
               'BW', 'NA', 'LS', 'SZ', 'GM', 'GN', 'SL', 'LR', 'TG', 'BJ', 'MR', 'ER', 'DJ', 'SO',
               'SS', 'CF', 'TD', 'GA', 'GQ', 'MU'],
    'Middle East': ['AE', 'SA', 'IL', 'TR', 'QA', 'KW', 'BH', 'OM', 'JO', 'LB', 'IQ', 'IR', 'YE',
                    'SY', 'PS', 'GE', 'AM', 'AZ'],
}

WORLD_ALIASES = {
    'USA': 'US', 'United States of America': 'US', 'U.S.': 'US', 'U.S.A.': 'US',
    'UK': 'GB', 'Great Britain': 'GB', 'England': 'GB',
    'UAE': 'AE', 'Korea': 'KR', 'Ivory Coast': 'CI', 'Czechia': 'CZ',
}


# ============================================================================
# Profile Registry
# ============================================================================

GEOGRAPHY_PROFILES: dict[str, GeographyProfile] = {
    'US': build_profile(
        'US', 'United States', US_LOCATIONS, US_REGIONS, MAP_REGIONAL,
        location_label='States', region_label='Regions', aliases=US_ALIASES,
        topojson_url='https://cdn.jsdelivr.net/npm/us-atlas@3/states-10m.json',
    ),
    'IN': build_profile(
        'IN', 'India', INDIA_LOCATIONS, INDIA_REGIONS, MAP_GLOBAL,
        location_label='States', region_label='Zones', aliases=INDIA_ALIASES,
    ),
    'GB': build_profile(
        'GB', 'United Kingdom', UK_LOCATIONS, UK_REGIONS, MAP_GLOBAL,
        location_label='Nations', region_label='Nations',
    ),
    'CA': build_profile(
        'CA', 'Canada', CANADA_LOCATIONS, CANADA_REGIONS, MAP_GLOBAL,
        location_label='Provinces', region_label='Regions', aliases=CANADA_ALIASES,
    ),
    'WORLD': build_profile(
        'WORLD', 'World', WORLD_LOCATIONS, WORLD_REGIONS, MAP_GLOBAL,
        location_label='Countries', region_label='Continents', aliases=WORLD_ALIASES,
        topojson_url='https://cdn.jsdelivr.net/npm/world-atlas@2/countries-110m.json',
    ),
    'GENERIC': build_profile(
        'GENERIC', 'Generic', {}, {}, MAP_NONE,
        location_label='Locations', region_label='Groups',
    ),
}

DEFAULT_PROFILE_ID = 'WORLD'


def get_profile(profile_id: str | None) -> GeographyProfile:
    """Look up a registered profile, falling back to the world profile."""
    if profile_id and profile_id in GEOGRAPHY_PROFILES:
        return GEOGRAPHY_PROFILES[profile_id]
    return GEOGRAPHY_PROFILES[DEFAULT_PROFILE_ID]


# ============================================================================
# Normalization
# ============================================================================

def _clean(value: object) -> str | None:
    if value is None:
        return None
    if isinstance(value, float) and value != value:  # NaN from pandas
        return None
    text = ' '.join(str(value).split())
    return text or None


def normalize_location(value: object, profile: GeographyProfile) -> str | None:
    """
    Map a raw location cell to a canonical code of `profile`.

    Tries an exact (case-insensitive) code match, then an exact display-name
    or alias match. Returns None when neither matches.
    """
    text = _clean(value)
    if text is None:
        return None

    upper = text.upper()
    if upper in profile.locations:
        return upper
    # Generic catalogs keep the raw value as the code
    if text in profile.locations:
        return text

    return profile.name_to_code.get(text.lower())


def region_of(code: str | None, profile: GeographyProfile) -> str | None:
    """Return the first region (in profile order) that lists `code`."""
    if not code:
        return None
    for region, members in profile.regions.items():
        if code in members:
            return region
    return None


def locations_of_regions(region_names: Iterable[str], profile: GeographyProfile) -> list[str]:
    """Ordered, de-duplicated union of the member codes of the given regions."""
    seen: dict[str, None] = {}
    for region in region_names:
        for code in profile.regions.get(region, ()):
            seen.setdefault(code, None)
    return list(seen)


def location_name(code: str, profile: GeographyProfile) -> str:
    return profile.locations.get(code, code)


# ============================================================================
# Detection
# ============================================================================

def detect_geography(values: Iterable[object]) -> GeographyProfile:
    """
    Pick the profile that best explains a sample of location values.

    Each non-generic profile is scored by the share of sampled values it can
    normalize; the best score above DETECTION_THRESHOLD wins (earlier profiles
    win ties). Only the first DETECTION_SAMPLE_SIZE values are scored. Otherwise
    a generic profile is built from all distinct values.
    """
    all_values = [text for text in (_clean(v) for v in values) if text]
    cleaned = all_values[:DETECTION_SAMPLE_SIZE]
    generic = GEOGRAPHY_PROFILES['GENERIC']
    if not cleaned:
        return generic

    best_id = None
    best_score = DETECTION_THRESHOLD
    for profile_id, profile in GEOGRAPHY_PROFILES.items():
        if profile_id == 'GENERIC':
            continue
        matches = sum(1 for text in cleaned if normalize_location(text, profile) is not None)
        score = matches / len(cleaned)
        if score > best_score:
            best_score = score
            best_id = profile_id

    if best_id is not None:
        logger.info("Detected geography profile %s (%.0f%% of sampled values)", best_id, best_score * 100)
        return GEOGRAPHY_PROFILES[best_id]

    logger.info("No geography profile matched; using a generic catalog")
    return generic_profile(all_values)


def generic_profile(values: Iterable[object]) -> GeographyProfile:
    """GENERIC profile whose catalog is the distinct cleaned values."""
    unique_values = list(dict.fromkeys(text for text in (_clean(v) for v in values) if text))
    return replace(
        GEOGRAPHY_PROFILES['GENERIC'],
        locations={v: v for v in unique_values},
        name_to_code={v.lower(): v for v in unique_values},
    )


# ============================================================================
# Colors
# ============================================================================

REGION_COLOR_PALETTE = [
    (172, 66, 50),  # teal
    (262, 83, 58),  # purple
    (340, 82, 52),  # rose
    (38, 92, 50),   # amber
    (200, 80, 50),  # blue
    (150, 60, 45),  # green
    (30, 90, 55),   # orange
    (280, 70, 55),  # violet
    (10, 80, 55),   # red
    (190, 70, 45),  # cyan
]


def hsl(hue: int, saturation: int, lightness: float) -> str:
    return f"hsl({hue}, {saturation}%, {round(lightness)}%)"


def region_base_colors(profile: GeographyProfile) -> dict[str, tuple[int, int, int]]:
    """Region name -> (hue, saturation, lightness), assigned in region order."""
    return {
        region: REGION_COLOR_PALETTE[i % len(REGION_COLOR_PALETTE)]
        for i, region in enumerate(profile.regions)
    }


def region_colors(profile: GeographyProfile) -> dict[str, str]:
    return {region: hsl(*base) for region, base in region_base_colors(profile).items()}
