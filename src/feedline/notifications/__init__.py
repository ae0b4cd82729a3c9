from feedline.notifications.correlator import NotificationCorrelator, subject_topic
from feedline.notifications.relay import JobLifecycleRelay

__all__ = ["JobLifecycleRelay", "NotificationCorrelator", "subject_topic"]
