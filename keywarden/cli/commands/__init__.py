"""
================================================================================
Subcomandos do CLI `keywarden`
================================================================================

Cada módulo `*_cmd.py` define um comando e se registra via
`@register_command` (ver `registry.py`).
"""
