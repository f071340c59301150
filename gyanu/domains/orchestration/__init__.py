"""
Orchestration Domain - Intent routing and answer synthesis.

This domain handles:
- Per-request workflow state and reducers
- The route -> acquire -> synthesize workflow graph
- Streaming progress events
"""

from .contracts import Tutor
from .graph import END, StepEvent, WorkflowGraph
from .models import (
    ChatMessage,
    Intent,
    OrchestrationState,
    Persona,
    RoutingMetadata,
    StepRecord,
    TutorResult,
    UserContext,
    persona_for,
)
from .pipeline import TutorPipeline, build_tutor_graph
from .state import merge_state
from .steps import TutorSteps, select_branch
from .streaming import StreamEvent, StreamPhase, convert_stream_events, to_sse

__all__ = [
    # Contracts
    "Tutor",
    # Models
    "Intent",
    "Persona",
    "RoutingMetadata",
    "UserContext",
    "ChatMessage",
    "OrchestrationState",
    "StepRecord",
    "TutorResult",
    "StreamEvent",
    "StreamPhase",
    # Implementations
    "WorkflowGraph",
    "StepEvent",
    "END",
    "TutorSteps",
    "TutorPipeline",
    # Helpers
    "build_tutor_graph",
    "convert_stream_events",
    "merge_state",
    "persona_for",
    "select_branch",
    "to_sse",
]
