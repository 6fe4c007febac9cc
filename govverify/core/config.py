"""
Application configuration (env, settings, constants).

Responsibility: Centralize config loading, environment variables, and app-wide
constants. Keeps the rest of the app decoupled from how config is sourced.
"""

import os

from dotenv import load_dotenv

load_dotenv()

BRAND_NAME: str = os.getenv("BRAND_NAME", "Gov Verify Agent").strip() or "Gov Verify Agent"

# OpenAI (agent LLM)
OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "").strip()
OPENAI_MODEL: str = os.getenv("OPENAI_MODEL", "gpt-4o-mini").strip() or "gpt-4o-mini"
OPENAI_TEMPERATURE: float = float(os.getenv("OPENAI_TEMPERATURE", "0.7"))

# Messaging gateway (outbound WhatsApp delivery)
WHATSAPP_SERVER_URL: str = (
    os.getenv("WHATSAPP_SERVER_URL", "http://localhost:3700").strip().rstrip("/")
    or "http://localhost:3700"
)
WHATSAPP_API_KEY: str = os.getenv("WHATSAPP_API_KEY", "").strip()

# Inbound API key for webhook and admin routes. Empty disables the check.
AGENT_API_KEY: str = os.getenv("AGENT_API_KEY", "").strip()

# Retrieval service (official government knowledge base)
RETRIEVAL_API_URL: str = os.getenv(
    "RETRIEVAL_API_URL", "https://message.geneline-x.net/api/v1/embeddings/search"
).strip()
RETRIEVAL_API_KEY: str = os.getenv("RETRIEVAL_API_KEY", "").strip()
RETRIEVAL_INDEX_NAME: str = os.getenv("RETRIEVAL_INDEX_NAME", "gov-verify").strip()
RETRIEVAL_NAMESPACE: str = os.getenv("RETRIEVAL_NAMESPACE", "").strip()
RETRIEVAL_CHATBOT_ID: str = os.getenv("RETRIEVAL_CHATBOT_ID", "").strip()
RETRIEVAL_TOP_K: int = int(os.getenv("RETRIEVAL_TOP_K", "5"))
# Number of matches combined into the answer handed to the model
RAG_TOP_MATCHES: int = 3

# SQLite database (relative paths resolve against the project root)
DATABASE_PATH: str = os.getenv("DATABASE_PATH", "data/govverify.db").strip() or "data/govverify.db"

# API timeouts (seconds)
LLM_API_TIMEOUT: float = 60.0
RETRIEVAL_TIMEOUT: float = 30.0
GATEWAY_TIMEOUT: float = 30.0

# Agent loop
MAX_TOOL_ITERATIONS: int = 10
TURN_TIMEOUT_SECONDS: float = float(os.getenv("TURN_TIMEOUT_SECONDS", "120"))

# Conversation sessions
SESSION_IDLE_SECONDS: float = 60 * 60
SESSION_SWEEP_INTERVAL_SECONDS: float = 60 * 60

# Tool limits
TOPIC_MAX_LENGTH: int = 500
THREAT_PAGE_SIZE: int = 10
