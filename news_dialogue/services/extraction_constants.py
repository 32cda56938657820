"""Constants and thresholds for content extraction."""

# Text length thresholds
MAX_CONTENT_LENGTH = 2500
MIN_READABILITY_TEXT_LENGTH = 100   # readability text must be longer than this
MIN_RULE_TEXT_LENGTH = 100          # per-site rule content must be longer than this
MIN_BASIC_TEXT_LENGTH = 200         # generic fallback content must be longer than this
MIN_TITLE_LENGTH = 5                # rule titles must be longer than this...
MAX_TITLE_LENGTH = 200              # ...and shorter than this

# "Probably readerable" advisory check
READERABLE_MIN_CONTENT_LENGTH = 200
READERABLE_MIN_SCORE = 20

# Readability engine parameters
READABILITY_MAX_ELEMS_TO_PARSE = 0  # no limit
READABILITY_NB_TOP_CANDIDATES = 5
READABILITY_CHAR_THRESHOLD = 500

# Confidence rubric
CONFIDENCE_LONG_CONTENT = 1000      # length > this scores +3
CONFIDENCE_MEDIUM_CONTENT = 500     # length > this scores +2, otherwise +1
CONFIDENCE_STRUCTURED_BONUS = 2
CONFIDENCE_METADATA_BONUS = 1
CONFIDENCE_HIGH_SCORE = 5
CONFIDENCE_MEDIUM_SCORE = 3

DEFAULT_TITLE = 'Untitled'
