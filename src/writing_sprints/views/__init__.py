"""Rich renderers for tracking state."""
