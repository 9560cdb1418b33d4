# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Do NOT commit real keys. Put them in .env (local, gitignored).

This file exists to make the repo self-documenting even without opening .env.
"""

ENV_VARS = {
    # App / logging
    "GEMINI_TASKS_APP_NAME": "App display name (default: Gemini Tasks).",
    "GEMINI_TASKS_LOG_LEVEL": "Console logging level (default: WARNING). The log file always gets DEBUG.",
    "GEMINI_TASKS_DATA_DIR": "Local directory for the log file (default: .local/gemini_tasks).",
    # Supabase
    "GEMINI_TASKS_SUPABASE_URL": (
        "Project URL, e.g. https://xyz.supabase.co. Also read from SUPABASE_URL or VITE_SUPABASE_URL."
    ),
    "GEMINI_TASKS_SUPABASE_ANON_KEY": (
        "Public anon key. Also read from SUPABASE_ANON_KEY or VITE_SUPABASE_ANON_KEY."
    ),
    # HTTP
    "GEMINI_TASKS_HTTP_CONNECT_TIMEOUT_SECONDS": "Connect timeout for Supabase calls (default: 5).",
    "GEMINI_TASKS_HTTP_READ_TIMEOUT_SECONDS": "Read timeout for Supabase calls (default: 15).",
    # Console
    "GEMINI_TASKS_CONFIRM_DELETES": "Ask y/N before /rm (true/false, default: true).",
}
