from santadraw.services.assignment import (
    AssignmentError,
    AssignmentInfeasible,
    InsufficientParticipants,
    generate_assignments,
)
from santadraw.services.draw_flow import DrawFlowError

__all__ = [
    "AssignmentError",
    "AssignmentInfeasible",
    "InsufficientParticipants",
    "generate_assignments",
    "DrawFlowError",
]
