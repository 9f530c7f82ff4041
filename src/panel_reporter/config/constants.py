"""
Centralized configuration for the Panel Reporter

This module defines the magic numbers, defaults and reserved tokens used
throughout the report pipeline. Centralizing these values makes it easier
to tune the layout and understand the decision boundaries.
"""

# ============================================================================
# DASHBOARD & RENDER BACKEND
# ============================================================================

DEFAULT_TIME_FROM = "now-6h"
"""Default start of the time range when neither the caller nor the dashboard sets one"""

DEFAULT_TIME_TO = "now"
"""Default end of the time range"""

DEFAULT_TIMEZONE = "browser"
"""Timezone forwarded to the render backend when none is given"""

DASHBOARD_API_PATH = "/api/dashboards/uid/{uid}"
"""Dashboard definition endpoint (relative to the Grafana base URL)"""

RENDER_API_PATH = "/render/d-solo/{uid}/{slug}"
"""Single-panel render endpoint (relative to the Grafana base URL)"""

DEFAULT_REQUEST_TIMEOUT = (10, 120)
"""(connect, read) timeout in seconds for backend requests; renders are slow"""

SCHEDULER_POLL_INTERVAL = 0.1
"""Seconds between cancellation checks while render workers are in flight"""

VARIABLE_QUERY_PREFIX = "var-"
"""Query-string prefix for template variable pairs"""

# ============================================================================
# TEMPLATE VARIABLES
# ============================================================================

ALL_VALUE_TOKENS = frozenset({"$__all", "__all"})
"""Reserved values (compared lowercased) marking an "All" selection"""

ALL_TEXT_TOKEN = "all"
"""Reserved display text (compared lowercased) marking an "All" selection"""

INTERNAL_SCOPED_VARS_ALLOWLIST = frozenset(
    {"__repeat", "__repeat_index", "__repeatRow", "__repeat_row"}
)
"""Internal ``__*`` scoped vars that survive conversion to variable overrides"""

CLONE_SUFFIX = "clone"
"""Segment appended to a panel id for each repeat iteration (1-based)"""

ROW_PANEL_TYPE = "row"
"""Panel ``type`` value identifying a row"""

# ============================================================================
# LAYOUT DEFAULTS (points unless noted)
# ============================================================================

DEFAULT_PANELS_PER_PAGE = 2
DEFAULT_PANEL_SPACING = 16
DEFAULT_RENDER_WIDTH = 1000
"""Pixel width requested from the render backend"""

DEFAULT_RENDER_HEIGHT = 500
"""Pixel height requested from the render backend"""

DEFAULT_PAGE_MARGIN = 32
DEFAULT_RENDER_CONCURRENCY = 1

DEFAULT_FONT_FAMILY = "helvetica"
DEFAULT_FONT_STYLE = "normal"
DEFAULT_FONT_COLOR = "#000000"
DEFAULT_TITLE_FONT_SIZE = 12
DEFAULT_PAGE_NUMBER_FONT_SIZE = 10

DEFAULT_LOGO_WIDTH = 120
"""Maximum logo box width; the logo is fitted inside (aspect preserved)"""

DEFAULT_LOGO_HEIGHT = 40
"""Maximum logo box height"""

DEFAULT_BRANDING_LINE_HEIGHT = 14
DEFAULT_BRANDING_PADDING = 8

# ============================================================================
# GRID & GEOMETRY
# ============================================================================

TWO_COLUMN_THRESHOLD = 4
"""Panels-per-page at or above which the grid switches to two columns"""

MIN_SLOT_WIDTH = 10
"""Floor for slot width when margins/branding exceed the page size"""

MIN_SLOT_HEIGHT = 40
"""Floor for slot height when margins/branding exceed the page size"""

MIN_CONTENT_HEIGHT = 10
"""Floor for the image area below a slot's title band"""

TITLE_BAND_PADDING = 4
"""Extra space below the title font size reserved before the image"""

TEXT_BASELINE_DIVISOR = 3
"""Branding text baseline sits at band center + line height / 3"""

# ============================================================================
# PAGE NUMBER LABELS
# ============================================================================

PAGE_LABEL_TEMPLATES: dict[str, str] = {
    "en": "Page {page} of {total}",
    "de": "Seite {page} von {total}",
}
"""Page-number label per two-letter language code; ``en`` is the fallback"""

DEFAULT_PAGE_LABEL_LANGUAGE = "en"

# ============================================================================
# OUTPUT
# ============================================================================

DEFAULT_SLUG = "dashboard"
"""Slug used when a dashboard title contains no usable characters"""

TIMESTAMP_FORMAT = "%Y%m%d-%H%M%S"
"""File name timestamp, seconds resolution"""
