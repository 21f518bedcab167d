import os

from dotenv import load_dotenv

load_dotenv()

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

HOST = os.getenv("HOST", "127.0.0.1")
PORT = int(os.getenv("PORT", "8000"))

DATABASE_PATH = os.getenv("DATABASE_PATH", "ehr.db")

DATABASE_URL = os.getenv("DATABASE_URL", "")
DATABASE_MAX_CONNECTIONS = int(os.getenv("DATABASE_MAX_CONNECTIONS", "5"))

# Identity asserted by the upstream auth gateway
AUTH_USER_HEADER = os.getenv("AUTH_USER_HEADER", "X-User-Id")

# First admin, created on startup when no admin profile exists yet
BOOTSTRAP_ADMIN_EMAIL = os.getenv("BOOTSTRAP_ADMIN_EMAIL", "")
BOOTSTRAP_ADMIN_FIRST_NAME = os.getenv("BOOTSTRAP_ADMIN_FIRST_NAME", "System")
BOOTSTRAP_ADMIN_LAST_NAME = os.getenv("BOOTSTRAP_ADMIN_LAST_NAME", "Administrator")

# Demo doctor account for walkthroughs
SEED_DEMO_ACCOUNT = os.getenv("SEED_DEMO_ACCOUNT", "false").lower() in ("1", "true", "yes", "on")
DEMO_ACCOUNT_EMAIL = os.getenv("DEMO_ACCOUNT_EMAIL", "demo@chitungwizahospital.com")
