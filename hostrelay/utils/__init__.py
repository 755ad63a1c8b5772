"""Small shared helpers: identifiers, timestamps, payload codec, paths."""
