"""
Repost task subsystem.

Components:
- command_parser.py: free text -> RepeatSchedule (pure)
- task_models.py: data structures (RepostTask, IntervalClass)
- task_store.py: JSON-file storage with capacity/dedup checks
- task_scheduler.py: per-task timers, recovery pass, firing logic
"""
