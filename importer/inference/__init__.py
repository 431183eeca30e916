"""Post-hoc statistical type inference over text-typed tables."""
