# Time budget per difficulty, in seconds
TIME_BUDGET_SECONDS = {
    "easy": 5 * 60,
    "medium": 10 * 60,
    "hard": 15 * 60,
}

# Follow-up budget
FREE_FOLLOW_UP_LIMIT = 2
UNLIMITED_FOLLOW_UPS = 1_000_000

# Question budget per tier, the opening question included
MAX_QUESTIONS = {
    "free": 5,
    "premium": 15,
}

# Free accounts get this many completed interviews
FREE_INTERVIEWS_PER_ACCOUNT = 2

# Prompt composition
TRANSCRIPT_WINDOW = 10

# Oracle defaults
DEFAULT_MODEL_ID = "openai:gpt-4o-mini"
DEFAULT_ORACLE_TIMEOUT_SECONDS = 15.0
MIN_ORACLE_TIMEOUT_SECONDS = 1.0
MAX_ORACLE_TIMEOUT_SECONDS = 60.0
ORACLE_TEMPERATURE = 0.7
ORACLE_MAX_TOKENS = 120

# Default paths
DEFAULT_DB_PATH = "interviewer_bot.db"

# Request limits
MAX_ANSWER_LENGTH = 5000
MAX_JOB_DESCRIPTION_LENGTH = 10000

# Console input
EXIT_SIGNAL = "__EXIT_INTERVIEW__"
EXIT_COMMANDS = {"exit", "quit"}
