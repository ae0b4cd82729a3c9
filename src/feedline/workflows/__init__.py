from feedline.workflows.analyze import AnalyzeWorkflows
from feedline.workflows.crunch import CrunchWorkflows
from feedline.workflows.dispatch import TaskSubmitter
from feedline.workflows.grab import GrabWorkflows
from feedline.workflows.lookup import SubjectLookup
from feedline.workflows.telemetry import TelemetryWorkflows

__all__ = [
    "AnalyzeWorkflows",
    "CrunchWorkflows",
    "GrabWorkflows",
    "SubjectLookup",
    "TaskSubmitter",
    "TelemetryWorkflows",
]
