"""Domain modules: matches, invitations, notifications and shared building blocks."""
