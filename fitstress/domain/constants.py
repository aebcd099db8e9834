"""Workload rules and constants."""

from typing import Final

# Job mix
READ_FRACTION: Final = 0.8
WRITE_BATCH_SIZE: Final = 15
REWRITE_COUNT: Final = 10

# Engagement weight distribution
ENGAGEMENT_MEAN: Final = 1.0
ENGAGEMENT_STDDEV: Final = 0.5
MIN_ENGAGEMENT: Final = 0.01

# Workout derivation: every workout starts at 06:30 local time
WORKOUT_TIMEZONE: Final = "America/Los_Angeles"
WORKOUT_START_HOUR: Final = 6
WORKOUT_START_MINUTE: Final = 30

# Random user generation
EMAIL_DOMAIN: Final = "fitbod.me"
EMAIL_LOCAL_PART_LENGTH: Final = 8
PRIVATE_KEY_BYTES: Final = 32
