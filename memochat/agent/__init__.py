"""Chat turn orchestration: prompt building, windowing, streaming and persistence."""
