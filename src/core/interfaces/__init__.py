"""Interfaces/abstracciones del Core.

Por qué:
- Define contratos (Protocol) que implementan adaptadores concretos
  (transporte HTTP del Internet Computer, identidades de dfx).
- Permite invertir dependencias: el Core depende de abstracciones y los tests
  sustituyen el transporte por un doble en memoria.
"""
