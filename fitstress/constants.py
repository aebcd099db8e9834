"""Infrastructure and technical constants."""

from typing import Final

# Connection defaults
DEFAULT_CONNECT: Final = "127.0.0.1:3030"
DEFAULT_REQUEST_TIMEOUT: Final = 30.0

# Run defaults
DEFAULT_BATCH_SIZE: Final = 1024
DEFAULT_N_THREADS: Final = 4
DEFAULT_PROGRESS_INTERVAL: Final = 100

# Input files
DEFAULT_USERS_CSV_PATH: Final = "var/random-users.csv"
DEFAULT_WORKOUTS_CSV_PATH: Final = "var/workout.csv"

# API endpoints
WORKOUTS_ENDPOINT: Final = "/workouts"
USER_ID_HEADER: Final = "X-User-Id"
