from enum import Enum
from typing import Dict

class NotificationType(Enum):
    CLOCK_IN = "clock-in"
    CLOCK_OUT = "clock-out"
    TICKET_START = "ticket-start"
    TICKET_STOP = "ticket-stop"

def notification_body(notification_type: NotificationType, context: Dict) -> str:
    templates = {
        NotificationType.CLOCK_IN: "{user_id} clocked in to {team_id}",
        NotificationType.CLOCK_OUT: "{user_id} clocked out of {team_id} ({duration})",
        NotificationType.TICKET_START: "{user_id} started ticket {ticket_id} in {team_id}",
        NotificationType.TICKET_STOP: "{user_id} stopped ticket {ticket_id} in {team_id} ({duration})",
    }
    return templates[notification_type].format(**context)
