"""SQLite persistence for agents, sub-agents, cursors and task assignments."""
