"""Draft authoring projects owned by the Builder (`builder_projects`)."""
