"""Client event handling for collaborative rooms."""
