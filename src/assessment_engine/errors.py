"""Exception taxonomy for the assessment engine."""


class AssessmentError(Exception):
    """Base class for every error raised by the engine."""


class ValidationError(AssessmentError):
    """A definition, answer, or grade failed validation.

    ``issues`` holds the individual problems so callers can report all of
    them at once instead of one per round trip.
    """

    def __init__(self, issues):
        if not isinstance(issues, (list, tuple)):
            issues = [issues]
        self.issues = list(issues)
        super().__init__("; ".join(str(i) for i in self.issues))


class AttemptBudgetExhausted(AssessmentError):
    """The student already used every allowed attempt."""


class Overdue(AssessmentError):
    """The due date passed and late submission is not allowed."""


class TimeLimitExpired(Overdue):
    """The attempt's time limit ran out and late submission is not allowed."""


class ConflictingInProgressAttempt(AssessmentError):
    """Another in-progress attempt won the race for the same student."""


class PersistenceError(AssessmentError):
    """The attempt store is unavailable."""


class AttemptStateError(AssessmentError):
    """The requested transition is not valid from the attempt's current state."""


class QuestionnaireNotFound(AssessmentError):
    pass


class AttemptNotFound(AssessmentError):
    pass


class NotTargeted(AssessmentError):
    """The student is not on the questionnaire's roster."""
