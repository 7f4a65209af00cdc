"""
unicycle - persistent scheduled jobs for a Discord moderation bot

Core Components:

- **Job Store**: Ordered list of scheduled jobs persisted as JSON after every
  change, with relative-interval validation on create and modify
- **Scheduler Loop**: Background task that wakes up every few seconds, runs the
  jobs that are due and reschedules or retires them
- **Executors**: Role additions and removals, unbans, echo messages (with an
  unsubscribe button for repeating DMs) and banner rotation
- **Moderation Logging**: Moderation channel notifications sent immediately or
  batched, plus an append-only moderation log file

Usage:
    from unicycle.main import main
    main()  # Starts the bot
"""
