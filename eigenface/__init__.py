"""Still-image face detection and eigenface recognition over a labeled face corpus."""
