from __future__ import annotations

from typing import Dict, Set

from .models import AnalysisState

ANALYSIS_TRANSITIONS: Dict[AnalysisState, Set[AnalysisState]] = {
    AnalysisState.awaiting_model: {
        AnalysisState.dispatching_tools,
        AnalysisState.awaiting_model,
        AnalysisState.done,
        AnalysisState.failed,
    },
    AnalysisState.dispatching_tools: {AnalysisState.awaiting_model, AnalysisState.failed},
    AnalysisState.done: set(),
    AnalysisState.failed: set(),
}


def validate_analysis_transition(current: AnalysisState, new: AnalysisState) -> bool:
    return new in ANALYSIS_TRANSITIONS.get(current, set())


def is_terminal(state: AnalysisState) -> bool:
    return not ANALYSIS_TRANSITIONS.get(state)
