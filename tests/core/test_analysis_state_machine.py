from docloom.core.models import AnalysisState
from docloom.core.state_machine import is_terminal, validate_analysis_transition


def test_valid_transitions() -> None:
    assert validate_analysis_transition(AnalysisState.awaiting_model, AnalysisState.dispatching_tools)
    assert validate_analysis_transition(AnalysisState.dispatching_tools, AnalysisState.awaiting_model)
    assert validate_analysis_transition(AnalysisState.awaiting_model, AnalysisState.done)


def test_invalid_transitions() -> None:
    assert not validate_analysis_transition(AnalysisState.dispatching_tools, AnalysisState.done)
    assert not validate_analysis_transition(AnalysisState.done, AnalysisState.awaiting_model)
    assert not validate_analysis_transition(AnalysisState.failed, AnalysisState.awaiting_model)


def test_terminal_states() -> None:
    assert is_terminal(AnalysisState.done)
    assert is_terminal(AnalysisState.failed)
    assert not is_terminal(AnalysisState.awaiting_model)
