# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Do NOT commit real secrets. Use .env (local, gitignored).

This file exists to make the repo self-documenting even without opening .env.example.
"""

ENV_VARS = {
    # App / logging
    "TASKBOARD_APP_NAME": "App display name (default: taskboard).",
    "TASKBOARD_LOG_LEVEL": "Console logging level (default: INFO).",
    # Connectors
    "TASKBOARD_CONSOLE_ENABLED": "Run the console REPL in the foreground (true/false, default true).",
    "TASKBOARD_MATRIX_ENABLED": "Use Matrix as the chat backend (true/false, default false).",
    # Channels
    "TASKBOARD_ARCHIVE_CHANNEL": (
        "Channel/room id archived task messages are moved to. Required for archiving. "
        "ARCHIVE_CHANNEL is accepted as well."
    ),
    "TASKBOARD_DEFAULT_CHANNEL": "Channel used for /task when the command has no room (console REPL on Matrix).",
    # Sweep
    "TASKBOARD_SWEEP_INTERVAL_HOURS": "Hours between reconciliation sweeps (default: 24).",
    "TASKBOARD_SWEEP_ON_START": "Run one sweep right after startup (true/false).",
    # Matrix
    "TASKBOARD_MATRIX_HOMESERVER": "Matrix homeserver URL.",
    "TASKBOARD_MATRIX_USER_ID": "Matrix user ID (bot).",
    "TASKBOARD_MATRIX_PASSWORD": "Password for first login (session stored locally).",
    "TASKBOARD_MATRIX_ROOMS": "Optional allowlist of room IDs (empty => all rooms).",
    # Paths (gitignored)
    "TASKBOARD_DATA_DIR": "Local data directory (default: .local/taskboard).",
    "TASKBOARD_MATRIX_STORE_PATH": "Matrix session directory (default: <data_dir>/matrix_store).",
    "TASKBOARD_TASKS_DB_PATH": "TaskStore SQLite path (default: <data_dir>/tasks.sqlite3).",
}
