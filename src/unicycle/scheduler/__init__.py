"""
Persistent job scheduling.

- **job_store.py**: Owner of the durable, ordered list of scheduled jobs.
  Every mutation rewrites the JSON file atomically.
- **scheduler_loop.py**: Wait-then-tick loop that runs due jobs inside
  per-job failure boundaries and advances every job it ran.
- **errors.py**: Error kinds that decide how a failure is handled.
"""
