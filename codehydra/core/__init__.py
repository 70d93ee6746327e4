"""Core services: workspace identity, git-backed metadata, setup and session discovery."""
