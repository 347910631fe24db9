"""Command implementations behind the click entry points in `tasksync.cli`."""
