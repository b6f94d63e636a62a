"""Plugin templates that run inside the embedded panel."""
