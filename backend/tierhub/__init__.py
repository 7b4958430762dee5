"""Real-time collaborative tierlist backend."""
