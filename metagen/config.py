"""Runtime settings for the metadata service.

Every value can be overridden through an environment variable of the same
name.
"""

import os

# ------------------------------------------------------------
# Text generation service
# ------------------------------------------------------------

OPENAI_API_KEY = os.environ.get("OPENAI_API_KEY", "")
OPENAI_BASE_URL = os.environ.get("OPENAI_BASE_URL") or None
# Sent as ``?api-version=`` for Azure-style gateways
OPENAI_API_VERSION = os.environ.get("OPENAI_API_VERSION") or None
OPENAI_MODEL = os.environ.get("OPENAI_MODEL", "gpt-4o-mini")
GENERATION_TIMEOUT = float(os.environ.get("GENERATION_TIMEOUT", "60"))  # seconds

# ------------------------------------------------------------
# Page fetching
# ------------------------------------------------------------

FETCH_TIMEOUT = float(os.environ.get("FETCH_TIMEOUT", "30"))  # seconds
REQUEST_DELAY = float(os.environ.get("REQUEST_DELAY", "0.5"))  # seconds between URLs
USER_AGENT = os.environ.get(
    "USER_AGENT",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
)

# Characters of page text folded into the generation prompt
MAX_TEXT_CHARS = int(os.environ.get("MAX_TEXT_CHARS", "1500"))
MAX_URLS_PER_REQUEST = int(os.environ.get("MAX_URLS_PER_REQUEST", "100"))

# ------------------------------------------------------------
# Brand store
# ------------------------------------------------------------

SUPABASE_URL = os.environ.get("SUPABASE_URL", "")
SUPABASE_KEY = os.environ.get("SUPABASE_KEY", "")
