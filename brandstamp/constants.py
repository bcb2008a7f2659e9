# Endpoint base name; the served file is "<IMAGE_NAME>.<ext>".
IMAGE_NAME = "social-image"
QUERY_VAR = "bs_img"

DEFAULTS_PREFIX = "_bs_default_"
OPTION_PREFIX = "_bs_"
# Options with this namespace exist in the schema but are never stored per entity.
DO_NOT_RENDER = "do_not_render"

OUTPUT_FORMATS = ("jpg", "png")
DEFAULT_OUTPUT_FORMAT = "jpg"

CANVAS_WIDTH = 1200
CANVAS_HEIGHT = 630
IMAGE_SIZE_NAME = "og-image"

# Logo and text offset from the image edge, in pixels.
PADDING = 40

MIN_LOGO_SCALE = 10
MAX_LOGO_SCALE = 200

MIN_FONT_SIZE = 16
MAX_FONT_SIZE = 64
DEF_FONT_SIZE = 40
LINE_HEIGHT_FACTOR = 1.25

DEFAULT_FONT = "Roboto-Bold"
DEFAULT_FONT_WEIGHT = 400
DEFAULT_FONT_STYLE = "normal"

SIMPLE_SHADOW_COLOR = "#555555DD"
NO_SHADOW_COLOR = "#00000000"
SIMPLE_SHADOW_LEFT = -2
SIMPLE_SHADOW_TOP = 2

DEFAULT_TEXT = "Type here to change the text on the image\nChange logo and image below"
DEFAULT_TITLE_FORMAT = "{title} - {blogname}"

POSITION_GRID = {
    "top-left": "Top Left",
    "top": "Top Center",
    "top-right": "Top Right",
    "left": "Left Middle",
    "center": "Centered",
    "right": "Right Middle",
    "bottom-left": "Bottom Left",
    "bottom": "Bottom Center",
    "bottom-right": "Bottom Right",
}

FONT_WEIGHTS = {
    "thin": 100,
    "hairline": 100,
    "extralight": 200,
    "ultralight": 200,
    "light": 300,
    "normal": 400,
    "regular": 400,
    "book": 400,
    "medium": 500,
    "semibold": 600,
    "demibold": 600,
    "bold": 700,
    "extrabold": 800,
    "ultrabold": 800,
    "black": 900,
    "heavy": 900,
}
FONT_STYLES = ("normal", "italic")

BASE_CONTENT_ITEM = "content-item"
BASE_TAXONOMY_TERM = "taxonomy-term"
BASE_UNSUPPORTED = "unsupported"
ARCHIVE_ID = "archive"
NEW_ID = "new"

SEO_PLUGIN_YOAST = "yoast"
SEO_PLUGIN_RANKMATH = "rankmath"
YOAST_IMAGE_META = "_yoast_wpseo_opengraph-image-id"
RANKMATH_IMAGE_META = "rank_math_facebook_image_id"

# Stored by this package but not user-facing options.
ERRORS_KEY = "_bs_image__errors"
REWRITE_BASED_ON_KEY = "_bs_rewrite_rules_based_on"
NEEDS_REWRITE_KEY = "_bs_needs_rewrite_rules"
INTERNAL_KEYS = frozenset({ERRORS_KEY, REWRITE_BASED_ON_KEY, NEEDS_REWRITE_KEY})
