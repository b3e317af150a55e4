"""
Constants used across the prediction and settlement pipeline.
"""

# Points awarded at settlement
EXACT_MATCH_POINTS = 3
CORRECT_WINNER_POINTS = 2
INCORRECT_POINTS = -1

# Prediction input bounds
MIN_PREDICTED_SCORE = 0
MAX_PREDICTED_SCORE = 20
CAPTION_MAX_LENGTH = 280

# Usernames and the team handles reserved against them
USERNAME_MIN_LENGTH = 3
USERNAME_MAX_LENGTH = 20

# Cursor pagination
DEFAULT_PAGE_LIMIT = 20
MAX_PAGE_LIMIT = 100

# Fixture sync window
DEFAULT_SYNC_DAYS_AHEAD = 7
MAX_SYNC_DAYS_AHEAD = 100  # Provider rejects "between" ranges longer than this
