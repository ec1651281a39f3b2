"""Learning journey publish: models, validation, media interleaving, writer and read views."""
