"""Domain services: streaks, statistics, date windows, aggregation and auth."""
