"""HTTP surface for storyline."""
