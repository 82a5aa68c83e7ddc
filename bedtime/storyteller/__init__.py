"""Story generation stages: prompt, provider calls and cover rendering."""
