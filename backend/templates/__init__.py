"""Jinja2 templates rendered by the report assembler."""
