"""Git/GitHub workflow synchronization engine for agent workspaces."""
