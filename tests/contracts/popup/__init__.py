# Popup Service Contracts

"""
Popup Service Contract Module

This module contains:
- data_contract.py: Test data factories for popup definitions, display
  states and page contexts
"""
