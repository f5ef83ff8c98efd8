from app.core.exceptions import (
    AppError,
    ConfigurationError,
    InfeasibleScheduleError,
    InvalidSchedulingInputError,
    ScheduleBudgetExceededError,
    SchedulerError,
)

def test_scheduler_error_structure():
    err = SchedulerError(message="Test error", details={"foo": "bar"})
    assert err.status_code == 400
    assert err.message == "Test error"
    assert err.details == {"foo": "bar"}
    assert isinstance(err, AppError)

def test_app_error_defaults():
    err = AppError("Generic error")
    assert err.status_code == 500
    assert err.details == {}

def test_infeasible_schedule_error_is_a_scheduler_error():
    err = InfeasibleScheduleError(details={"total_sections": 3})
    assert isinstance(err, SchedulerError)
    assert err.status_code == 400
    assert err.message.startswith("No feasible schedule")
    assert err.details == {"total_sections": 3}

def test_input_and_configuration_errors_status():
    assert InvalidSchedulingInputError("bad").status_code == 422
    assert ConfigurationError("bad").status_code == 500

def test_budget_exceeded_error_is_distinct_from_infeasible():
    err = ScheduleBudgetExceededError(details={"budget_exhausted": True})
    assert isinstance(err, SchedulerError)
    assert not isinstance(err, InfeasibleScheduleError)
    assert err.status_code == 400
    assert "budget" in err.message
    assert not err.message.startswith("No feasible schedule")
