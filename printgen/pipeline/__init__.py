"""Generation pipeline stages: planning, rendering, merging, post-processing."""
