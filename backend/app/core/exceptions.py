class AppError(Exception):
    """Base class for all application exceptions."""
    def __init__(self, message: str, status_code: int = 500, details: dict = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

class SchedulerError(AppError):
    """Raised when the scheduler encounters a logical error or invalid state."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=400, details=details)

class InfeasibleScheduleError(SchedulerError):
    """Raised when no solver produced a schedule satisfying every hard constraint."""
    def __init__(self, message: str = None, details: dict = None):
        super().__init__(
            message or "No feasible schedule could be generated. Try relaxing the constraints.",
            details=details,
        )

class InvalidSchedulingInputError(AppError):
    """Raised when a problem instance is rejected before solving starts."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=422, details=details)

class ConfigurationError(AppError):
    """Raised when system configuration is invalid."""
    def __init__(self, message: str):
        super().__init__(message, status_code=500)

class ScheduleBudgetExceededError(SchedulerError):
    """Raised when the search stopped on its step or time budget before reaching an answer."""
    def __init__(self, message: str = None, details: dict = None):
        super().__init__(
            message
            or "Schedule search stopped before completion because its step or time budget ran out. "
            "Increase max_backtrack_steps or time_budget_seconds.",
            details=details,
        )
