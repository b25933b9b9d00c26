"""Scheduling utilities for recurring birthday jobs."""

from .config import JobDefinition, RetryPolicy, load_job_definitions
from .runner import BirthdayJobScheduler

__all__ = ["BirthdayJobScheduler", "JobDefinition", "RetryPolicy", "load_job_definitions"]
