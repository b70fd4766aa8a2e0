"""Runtime utilities shared by generated templates."""
