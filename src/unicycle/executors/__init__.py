"""
One executor per scheduled action type, plus the dispatcher that picks one.

Executors return an :class:`~unicycle.executors.base.ExecutionOutcome` and
report moderation-relevant work through the moderation log dispatcher.
"""
