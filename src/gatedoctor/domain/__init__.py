"""Pure gateway logic: URLs, payload shapes, suggestions and exit codes."""
