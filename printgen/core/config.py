# =============================================================================
# Page Geometry
# =============================================================================

MM_TO_PT = 2.83465  # PDF points per millimetre

A4_WIDTH_MM = 210.0
A4_HEIGHT_MM = 297.0
LETTER_WIDTH_MM = 215.9
LETTER_HEIGHT_MM = 279.4

CARD_WIDTH_MM = 60.0  # Single printed card (front or back)
CARD_HEIGHT_MM = 60.0

DEFAULT_BLEED_MM = 3.0

# Region flags that select US Letter paper for digital templates
US_REGION_FLAGS = frozenset({"us", "en-us", "en_us", "ca", "en-ca", "en_ca"})


# =============================================================================
# Item Layout
# =============================================================================

DIGITAL_ITEMS_PER_PAGE = 6
DIGITAL_PAGES_PER_ITEM = 1
SINGLE_SHEET_ITEMS_PER_PAGE = 1
SINGLE_SHEET_PAGES_PER_ITEM = 2  # front and back
MULTI_SHEET_ITEMS_PER_PAGE = 12
MULTI_SHEET_PAGES_PER_ITEM = 2  # front sheet and back sheet

MAX_PAGES_PER_CHUNK = 100


# =============================================================================
# Remote Rendering
# =============================================================================

RENDER_MAX_ATTEMPTS = 3
RENDER_BACKOFF_SECONDS = 1.0  # attempt * step
RENDER_TIMEOUT_SECONDS = 120.0
MAX_CONCURRENT_CHUNKS = 8

# HTTP statuses that mean the request itself is wrong; never retried
BAD_INPUT_STATUSES = frozenset({400, 404, 413, 422})


# =============================================================================
# Job Limits
# =============================================================================

JOB_TIMEOUT_SECONDS = 900.0


# =============================================================================
# File Naming
# =============================================================================

OUTPUT_TIMESTAMP_FORMAT = "%Y%m%d%H%M%S%f"
TEMP_FILE_TEMPLATE = "temp_{offset}_{filename}"
ARTIFACT_KEY_TEMPLATE = "{prefix}/{job_id}/{name}-{suffix}.pdf"


# =============================================================================
# Error Handling
# =============================================================================

ERROR_BODY_MAX_CHARS = 200  # Maximum chars from error response bodies
