"""
Resume analyzer core package.

This package currently focuses on the asynchronous analysis subsystem. It
exposes dataclasses for jobs and their parameters, a job store with in-memory
and SQL implementations, text-extraction and AI-analysis collaborators, and a
single-worker queue that drives analysis jobs through extraction, analysis
and finalization while clients poll for status.
"""
