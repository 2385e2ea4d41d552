"""Modelos y entidades del dominio.

Por qué:
- Aquí viven las estructuras de datos puras y estrictas (Pydantic v2), los
  identificadores (principal, CID) y la taxonomía de errores.
- El dominio no conoce HTTP, CBOR ni la CLI: solo conceptos del problema.
"""
