"""storyweave — storyline graph engine for interactive historical fiction."""
