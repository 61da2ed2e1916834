"""
Core application engine for orchestrating fetch jobs.

This package contains the primary logic. The `JobManager` acts as the
session coordinator, delegating each individual job to the `JobRunner`.
"""
