"""Client surfaces: click CLI and Flask web API."""
