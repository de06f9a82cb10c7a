"""HTTP adapter exposing the governance facade."""
