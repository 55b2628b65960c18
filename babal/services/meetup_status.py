# Meetup status state machine: allowed transitions only.
# OPEN -> CONFIRMED, CANCELLED
# CONFIRMED -> COMPLETED, CANCELLED
# COMPLETED -> (none)
# CANCELLED -> (none)

from typing import Optional

from babal.models.meetup import MeetupStatus

# Allowed target statuses from each current status.
ALLOWED_TRANSITIONS: dict[MeetupStatus, set[MeetupStatus]] = {
    MeetupStatus.OPEN: {MeetupStatus.CONFIRMED, MeetupStatus.CANCELLED},
    MeetupStatus.CONFIRMED: {MeetupStatus.COMPLETED, MeetupStatus.CANCELLED},
    MeetupStatus.COMPLETED: set(),
    MeetupStatus.CANCELLED: set(),
}


def is_terminal(status: str) -> bool:
    return not ALLOWED_TRANSITIONS[MeetupStatus(status)]


def check_status_transition(current: str, target: str) -> Optional[str]:
    """
    Validate status transition. Returns None if allowed, else a clear error message for HTTP 409.
    """
    current_status = MeetupStatus(current)
    target_status = MeetupStatus(target)
    allowed = ALLOWED_TRANSITIONS[current_status]
    if target_status not in allowed:
        allowed_str = ", ".join(sorted(s.value for s in allowed)) if allowed else "none"
        return (
            f"Transition from {current_status.value} to {target_status.value} is not allowed. "
            f"From {current_status.value} only allowed: {allowed_str}."
        )
    return None
