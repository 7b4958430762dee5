"""Settings, persistence and identifier helpers shared by every layer."""
