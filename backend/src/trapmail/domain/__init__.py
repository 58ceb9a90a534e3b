"""Domain layer: captured-mail records, filenames and filters."""
