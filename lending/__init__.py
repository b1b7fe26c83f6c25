"""Lending - library lending record keeper

This package contains:
- Entities (book.py, member.py, transaction.py)
- Database layer and record stores (database.py, repositories.py)
- Catalog management (library.py)
- Borrow/return engine (transaction_service.py)
- HTTP API (api.py) and its console client (client.py, main.py)
"""
