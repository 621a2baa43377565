"""Customer notices pushed on the status stream."""

from typing import Optional

from queueline.schemas.queue import ApproachingNotice, QueueStatus, QueueStatusView


def check_notification(view: QueueStatusView, threshold: int) -> Optional[ApproachingNotice]:
    """Return an "up soon" notice when few enough parties are ahead of a waiting entry."""
    if view.status is not QueueStatus.WAITING or view.position < 1:
        return None
    if view.people_ahead > threshold:
        return None
    if view.people_ahead == 0:
        message = "You're next! Please make your way to the host stand."
    else:
        message = f"You're up soon! {view.people_ahead} ahead of you."
    return ApproachingNotice(people_ahead=view.people_ahead, message=message)
