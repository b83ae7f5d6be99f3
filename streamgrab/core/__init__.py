"""
Core application engine for orchestrating downloads.

The `DownloadManager` acts as the session coordinator, running one
`JobRunner` per source URL. Each runner drives its job's state machine and
delegates segment retrieval to the `BatchScheduler`.
"""
