# Example user configuration for debatelib
# Place this file at ~/.debatelib/config.py
# Upper-case names override the matching setting; environment variables
# (DEBATE_MCP_URL, DEBATE_STORAGE, ...) are read first and lose to this file.

# Tool server
MCP_URL = "http://localhost:8000"
CALL_TIMEOUT = 60            # Topic generation can be slow on large models
SESSION_TIMEOUT = 10

# Topic store: "sqlite" (local file) or "remote" (Supabase-style REST table)
STORAGE = "sqlite"
SQLITE_PATH = "~/.debatelib/debates.db"

# STORAGE = "remote"
# REMOTE_URL = "https://your-project.supabase.co"
# REMOTE_KEY = "your-anon-key"
# REMOTE_TABLE = "debates"

LOG_LEVEL = "INFO"
