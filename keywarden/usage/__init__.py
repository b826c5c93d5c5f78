"""
================================================================================
USAGE MODULE - Consulta e Agregação de Consumo
================================================================================

Consulta o endpoint de consumo para cada key habilitada e agrega os
resultados em totais, grupos e uma entrada de histórico.

## Uso:

```python
from keywarden.usage import UsageAggregator

aggregator = UsageAggregator(storage, config)
snapshot = aggregator.collect()
```
"""

from .client import UsageClient, fetch_key_usage, format_period_date, mask_key
from .aggregator import UsageAggregator, empty_totals

__all__ = [
    "UsageAggregator",
    "UsageClient",
    "empty_totals",
    "fetch_key_usage",
    "format_period_date",
    "mask_key",
]
