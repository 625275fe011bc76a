"""Quiz-attempt constants shared across UI, server and core layers."""

MCQ_OPTION_COUNT: int = 4
MCQ_MARKS: int = 1
DEFAULT_THEORY_MARKS: int = 5
DEFAULT_DURATION_MINUTES: int = 1
DEFAULT_ATTEMPT_LIMIT: int = 1

MAX_VIOLATIONS: int = 3
VIOLATION_WARNING_TEMPLATE: str = "Anti-cheat warning {count}/{limit}: {reason}"
TICK_INTERVAL_SECONDS: float = 1.0
TICK_INTERVAL_MS: int = 1000

QUIZ_SUBMISSION_POINTS: int = 20
FIRST_QUIZ_BADGE: str = "First Quiz Attempt"
QUIZ_MASTER_BADGE: str = "Quiz Master"
QUIZ_MASTER_THRESHOLD: int = 4
