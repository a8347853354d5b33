"""Core components - clients, jobs, orchestration, configuration."""
