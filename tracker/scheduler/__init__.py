from .scheduler import ALREADY_RUNNING_MESSAGE, REFRESH_JOB_ID, RefreshScheduler, TriggerResult

__all__ = ["RefreshScheduler", "TriggerResult", "REFRESH_JOB_ID", "ALREADY_RUNNING_MESSAGE"]
