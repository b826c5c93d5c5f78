"""
================================================================================
keywarden — Monitor de Saldo de API Keys
================================================================================

Monitora o consumo/saldo de um conjunto de API keys contra o endpoint de
medição remoto, persiste as leituras agregadas como série temporal e expõe
o gerenciamento (CRUD) das keys.

## Componentes:

- `storage`: Persistência (arquivo local, blob store, key-value store)
- `codec`: Criptografia dos segredos das keys em repouso
- `usage`: Consulta e agregação de consumo
- `keys`: Gerenciamento das keys (add, update, delete, batch)
- `api`: API REST (FastAPI)
- `cli`: Interface de linha de comando (`keywarden`)
"""

__version__ = "1.0.0"
