"""Job queue and worker passes for relayed prompts.

The queue lives in one SQLite table. A pass claims pending jobs with a
conditional UPDATE (the row counts as claimed only when exactly one row was
affected), calls the compute provider for each job in order, and commits the
outcome under the same claim. Concurrent passes never process the same job
for the same attempt, and a pass that dies mid-flight only leaves behind a
pending job whose claim lease will expire.
"""
