"""Internal constants shared across the library."""

METADATA_URL = "https://raw.githubusercontent.com/google/libphonenumber/master/resources/PhoneNumberMetadata.xml"
TIMEZONE_URL = "https://raw.githubusercontent.com/google/libphonenumber/master/resources/timezones/map_data.txt"
ARCHIVE_URL = "https://codeload.github.com/google/libphonenumber/tar.gz/refs/heads/master"
CARRIER_SOURCE = "resources/carrier"
GEOCODING_SOURCE = "resources/geocoding"

USER_AGENT = "pyphonedata"

DEFAULT_CACHE_DIR = "/tmp/phonenumbersCacheDir"
CACHE_FILENAME = "phonenumbers_metadataCache.cache"
CARRIER_TREE_DIR = "carrier"
GEOCODING_TREE_DIR = "geocoding"

DEFAULT_UPDATE_INTERVAL: float = 24 * 3600
DEFAULT_FETCH_TIMEOUT: float = 60.0
DEFAULT_BULK_FETCH_TIMEOUT: float = 600.0

# ------------------------------------------------------------------
# Prefix map layout limits
# ------------------------------------------------------------------

#: Intern indices are written as uint16.
MAX_INTERN_VALUES = 0xFFFF
#: Per-key value counts are written as uint8.
MAX_VALUES_PER_KEY = 0xFF
VALUE_SEPARATOR = "\n"
