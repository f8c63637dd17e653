"""Interview core: turn-taking, follow-up budgeting and prompt composition."""
