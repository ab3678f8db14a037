"""Utilidades compartidas (configuración)."""
