"""Vehicle matching: geodesic distance, fitness scoring and candidate ranking."""
