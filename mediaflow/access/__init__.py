"""MediaFlow Access — Permission models, collaborator interfaces, resolution and enforcement."""
