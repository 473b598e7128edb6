"""
distcron: a horizontally-scalable cron scheduler.

Job definitions live in a relational store; any number of scheduler
instances poll for due jobs and coordinate through short-lived Redis
locks so a job fires once per window even with several nodes running.

Packages:
    distcron.core.scheduling   SchedulerLoop, JobStore, LockService,
                               ScheduleEvaluator, HistoryRecorder
    distcron.ops               job operations shared by API and CLI
    distcron.api               FastAPI application
    distcron.cli               typer command line
"""

__version__ = "0.3.0"

__all__ = ["__version__"]
