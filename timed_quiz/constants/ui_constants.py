"""Qt UI constants used by the attempt window."""

WINDOW_TITLE: str = "Quiz Attempt"

PREV_BUTTON: str = "Previous"
NEXT_BUTTON: str = "Next"
SUBMIT_BUTTON: str = "Submit Quiz"
RETRY_SAVE_BUTTON: str = "Retry Save"

NO_QUESTION_TIMER_TEXT: str = "No per-question timer"
TIME_LEFT_TEMPLATE: str = "Time Left: {seconds}s"
QUESTION_TIME_LEFT_TEMPLATE: str = "Question Time Left: {seconds}s"
QUESTION_HEADER_TEMPLATE: str = "Q{number}/{count}:"
LOCKED_OPTION_TEXT: str = "Option locked for this question (one-time selection)."
THEORY_PLACEHOLDER: str = "Write your answer here..."

ANTI_CHEAT_SUBMITTED_MESSAGE: str = "Quiz auto-submitted due to repeated anti-cheat violations."
SUBMITTED_MESSAGE: str = "Quiz submitted successfully."
SAVE_FAILED_MESSAGE: str = "Your answers are sealed but could not be saved. Retry to save them."
RESULT_TEMPLATE: str = "Result: {final}/{possible}"
THEORY_PENDING_SUFFIX: str = " (Theory marks pending)"
