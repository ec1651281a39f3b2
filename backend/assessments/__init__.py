"""Assessment authoring: models, numbering, SQL planning, XML rendering, publish and export."""
