import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./schedulesync.db")

# Firebase Configuration (bearer token verification)
FIREBASE_PROJECT_ID = os.getenv("FIREBASE_PROJECT_ID")

# Frontend base URL for booking links
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")

# AI assistant conversation state
# Pending confirmations (cancel/reschedule/template choice) live this long
PENDING_ACTION_TTL_MINUTES = int(os.getenv("PENDING_ACTION_TTL_MINUTES", "5"))
# In-process sweeper for expired pending actions
PENDING_ACTION_SWEEP_ENABLED = os.getenv("PENDING_ACTION_SWEEP_ENABLED", "true").lower() == "true"
PENDING_ACTION_SWEEP_INTERVAL = int(os.getenv("PENDING_ACTION_SWEEP_INTERVAL", "300"))
PENDING_ACTION_SWEEP_DELAY = int(os.getenv("PENDING_ACTION_SWEEP_DELAY", "10"))

# Rate limiting for the chat endpoint (per client IP)
AI_RATE_LIMIT_PER_MINUTE = int(os.getenv("AI_RATE_LIMIT_PER_MINUTE", "30"))

# Single-use quick links created from chat
QUICK_LINK_TTL_HOURS = int(os.getenv("QUICK_LINK_TTL_HOURS", "24"))
