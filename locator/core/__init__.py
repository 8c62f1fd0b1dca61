"""Query parsing, search and admin hierarchy engine."""
