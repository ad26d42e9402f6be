# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Do NOT commit real secrets or webhook URLs. Copy .env.example to .env and edit it there.

This file exists to make the repo self-documenting even without opening .env.example.
"""

ENV_VARS = {
    # App / logging
    "KTC_APP_NAME": "App display name (default: Kim Tâm Cát Taskboard).",
    "KTC_LOG_LEVEL": "Console logging level (default: INFO).",
    "KTC_CONSOLE_ENABLED": "Run the interactive console (true/false, default: true).",
    # Paths (gitignored)
    "KTC_DATA_DIR": "Local data directory (default: .local/ktc).",
    "KTC_STORAGE_PATH": "Persisted state JSON path (default: <data_dir>/local_storage.json).",
    # Directory webhooks (spreadsheet automation)
    "KTC_DIRECTORY_READ_URL": "GET endpoint returning the staff directory as JSON.",
    "KTC_DIRECTORY_WRITE_URL": "POST endpoint receiving {timestamp, action, payload} events.",
    "KTC_HTTP_TIMEOUT_SECONDS": "Webhook timeout in seconds (default: none).",
    # Development
    "KTC_DEV_MASTER_PASSWORD": "Password accepted for every account (unset => disabled).",
    # LLM / OpenAI-compatible endpoint
    "KTC_LLM_API_KEY": "API key (OPENAI_API_KEY is also read); unset => offline heuristic.",
    "KTC_LLM_BASE_URL": "Base URL (default: https://openrouter.ai/api/v1).",
    "KTC_LLM_MODELS": "Comma/space separated list of models to try in order.",
    "KTC_HTTP_REFERER": "Optional OpenRouter metadata header.",
}
