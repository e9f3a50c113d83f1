"""
This module contains the default configuration settings for the integration test runner.
It defines paths, the dependent server and test commands, readiness and shutdown timing,
and logging options. Every value can be overridden through the environment or a .env file.
"""

import os
import shlex
import pathlib
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv(override=True)


def _env_flag(name: str, default: str = "False") -> bool:
    return os.getenv(name, default).lower() in ('true', '1', 't', 'yes', 'y')


#* --- Core Paths ---
BASE_DIR = pathlib.Path(os.getenv("ITEST_BASE_DIR", pathlib.Path.cwd())).resolve()
OVERRIDES_JSON_PATH = pathlib.Path(os.getenv("ITEST_OVERRIDES_PATH", BASE_DIR / "itest_overrides.json"))

#* --- Process Title ---
PROCESS_TITLE = "ITest - Orchestrator"

#* --- Test Server Settings ---
TEST_SERVER_HOST = os.getenv("TEST_SERVER_HOST", "localhost")
TEST_SERVER_PORT = int(os.getenv("TEST_SERVER_PORT", "3001"))
SERVER_COMMAND = os.getenv("SERVER_COMMAND", "node")
SERVER_ARGS = shlex.split(os.getenv("SERVER_ARGS", "test-simulation/server.js"))
# Substring the server prints once it has bound its listening port
READY_MARKER = os.getenv("READY_MARKER", "running on")
HEALTH_PATH = os.getenv("HEALTH_PATH", "/health")

#* --- Readiness Settings (seconds) ---
SERVER_START_TIMEOUT = float(os.getenv("SERVER_START_TIMEOUT", "10"))
READINESS_TIMEOUT = float(os.getenv("READINESS_TIMEOUT", "30"))
HEALTH_POLL_INTERVAL = float(os.getenv("HEALTH_POLL_INTERVAL", "1"))
HEALTH_PROBE_TIMEOUT = float(os.getenv("HEALTH_PROBE_TIMEOUT", "2"))
# 'first': marker or probe is enough. 'both': marker and probe are required.
READINESS_POLICY = os.getenv("READINESS_POLICY", "first").lower()

#* --- Shutdown Settings ---
GRACEFUL_SHUTDOWN_TIMEOUT = float(os.getenv("GRACEFUL_SHUTDOWN_TIMEOUT", "5"))  # seconds before force-killing

#* --- Test Process Settings ---
TEST_COMMAND = os.getenv("TEST_COMMAND", "npm")
TEST_ARGS = shlex.split(os.getenv("TEST_ARGS", "test -- --testPathPattern=TestSimulationIntegration"))

#* --- Logging ---
VERBOSE_LOGGING = _env_flag("VERBOSE_LOGGING")
LOKI_ENABLED = _env_flag("LOKI_ENABLED")
LOKI_URL = os.getenv("LOKI_URL", "http://localhost:3100")
LOKI_ORG_ID = os.getenv("LOKI_ORG_ID", "fake")
LOG_BUFFER_FLUSH_INTERVAL = 5
LOKI_BATCH_SIZE = 200

#* --- Appointment API ---
APPOINTMENTS_PATH = "/api/appointments"
API_REQUEST_TIMEOUT = 5

#* --- MODIFIABLE SETTINGS (may be set through the overrides file) ---
MODIFIABLE_SETTINGS = {
    "TEST_SERVER_PORT", "SERVER_COMMAND", "SERVER_ARGS", "READY_MARKER", "HEALTH_PATH",
    "SERVER_START_TIMEOUT", "READINESS_TIMEOUT", "HEALTH_POLL_INTERVAL", "HEALTH_PROBE_TIMEOUT",
    "READINESS_POLICY", "GRACEFUL_SHUTDOWN_TIMEOUT", "TEST_COMMAND", "TEST_ARGS",
    "LOG_BUFFER_FLUSH_INTERVAL",
}
