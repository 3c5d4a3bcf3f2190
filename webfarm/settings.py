"""
This module contains the configuration settings for the WebFarm background worker host.
It defines paths, supervisor timings, and logging configuration.
It is used throughout the application to ensure consistent settings and paths.
"""

import os
import sys
import pathlib
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv(override=True)

#* --- Core Paths ---
BASE_DIR = pathlib.Path(__file__).resolve().parent.parent  # Project Root
RUNTIME_DIR = pathlib.Path(os.getenv("WEBFARM_RUNTIME_DIR", BASE_DIR / "runtime"))
LOGS_DIR = RUNTIME_DIR / "logs"

#* --- Deployment Layout ---
# Consumed: <SITES_DIR>/<site>/bin/<name>/<name><EXECUTABLE_EXTENSION>
SITES_DIR = pathlib.Path(os.getenv("WEBFARM_SITES_DIR", BASE_DIR / "sites"))
# Produced: <EXECUTION_DIR>/<site>/<name>/...
EXECUTION_DIR = pathlib.Path(os.getenv("WEBFARM_EXECUTION_DIR", RUNTIME_DIR / "execution"))
BUNDLE_DIR_NAME = "bin"
SIDECAR_FILENAME = os.getenv("WEBFARM_SIDECAR_FILENAME", "web.config")
EXECUTABLE_EXTENSION = os.getenv(
    "WEBFARM_EXECUTABLE_EXTENSION", ".exe" if sys.platform == "win32" else ""
)

#* --- Application File Paths ---
OVERRIDES_JSON_PATH = RUNTIME_DIR / "overrides.json"
SHUTDOWN_SIGNAL_PATH = RUNTIME_DIR / "shutdown.signal"
LOG_FILE_PATH = LOGS_DIR / "worker_host.log"

#* --- Worker Unit Settings ---
DRAIN_TIMEOUT = 1.0          # seconds to wait for a worker to exit on its own
DELETE_RETRY_ATTEMPTS = 6    # run directory removal attempts before giving up
DELETE_RETRY_DELAY = 0.2     # seconds between removal attempts

#* --- Supervisor Settings ---
SUPERVISOR_SLEEP_INTERVAL = 2  # seconds between liveness polls
FANOUT_WORKERS = int(os.getenv("WEBFARM_FANOUT_WORKERS", "1"))
DEPLOY_WATCH_ENABLED = os.getenv("WEBFARM_DEPLOY_WATCH_ENABLED", "True").lower() in ('true', '1', 't')
DEPLOY_DEBOUNCE_SECONDS = 5
CLEAN_EXECUTION_DIR_ON_START = os.getenv("WEBFARM_CLEAN_EXECUTION_DIR", "True").lower() in ('true', '1', 't')

#* --- Logging ---
LOG_TO_FILE = os.getenv("WEBFARM_LOG_TO_FILE", "False").lower() in ('true', '1', 't')
VERBOSE_LOGGING = False

#* --- MODIFIABLE SETTINGS (Changeable through overrides.json) ---
MODIFIABLE_SETTINGS = {
    # Worker units
    "DRAIN_TIMEOUT", "DELETE_RETRY_ATTEMPTS", "DELETE_RETRY_DELAY",
    # Supervisor
    "SUPERVISOR_SLEEP_INTERVAL", "FANOUT_WORKERS",
    "DEPLOY_WATCH_ENABLED", "DEPLOY_DEBOUNCE_SECONDS",
    # Logging
    "LOG_TO_FILE",
}
